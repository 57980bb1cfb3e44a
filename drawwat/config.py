from dotenv import load_dotenv
import os

# Load environment variables from a .env file
load_dotenv()

# Retrieve parts of the database URL from environment variables
DB_USER = os.getenv("DB_USERNAME", "root")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_HOST = os.getenv("DB_HOST", "127.0.0.1")
DB_PORT = os.getenv("DB_PORT", "3306")
DB_NAME = os.getenv("DB_NAME", "drawwat")

# Auth
SECRET_KEY = os.getenv("SECRET_KEY", "secret")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 30))

# S3 / R2 Configuration
S3_BUCKET_NAME = os.getenv("S3_BUCKET_NAME")
AWS_ACCESS_KEY = os.getenv("AWS_ACCESS_KEY")
AWS_SECRET_KEY = os.getenv("AWS_SECRET_KEY")
S3_REGION = os.getenv("S3_REGION")
S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL")  # set for R2 or other S3-compatible stores
S3_PUBLIC_URL = os.getenv("S3_PUBLIC_URL", f"https://{S3_BUCKET_NAME}.s3.{S3_REGION}.amazonaws.com")
S3_PATH_PREFIX = os.getenv("S3_PATH_PREFIX", "drawwat")

# Game rules
DEFAULT_EXPIRES_IN = int(os.getenv("DEFAULT_EXPIRES_IN", 1209600))  # 14 days, in seconds
MAX_ANSWER_LENGTH = int(os.getenv("MAX_ANSWER_LENGTH", 500))
MAX_HINT_LENGTH = int(os.getenv("MAX_HINT_LENGTH", 500))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", 100))
NICKNAME_CACHE_SIZE = int(os.getenv("NICKNAME_CACHE_SIZE", 512))

SHARE_BASE_URL = os.getenv("SHARE_BASE_URL", "https://drawwat.com")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Build the database URL
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"mysql+pymysql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
)
