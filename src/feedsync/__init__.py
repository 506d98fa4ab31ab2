from dotenv import load_dotenv

# Load environment variables from .env before any module reads os.environ
# at import time (the store and blob clients are configured from it).
load_dotenv()
