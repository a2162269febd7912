from dotenv import load_dotenv
import os

load_dotenv()  # Carrega variáveis do .env

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./maquininhas.db")
SECRET_KEY = os.getenv("SECRET_KEY", "troque-esta-chave")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60))
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")
ADMIN_NAME = os.getenv("ADMIN_NAME", "Administrador")
ADMIN_ROLE = os.getenv("ADMIN_ROLE", "admin")
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
CORS_ORIGIN_REGEX = os.getenv("CORS_ORIGIN_REGEX", r"^https://.*\.vercel\.app$")

SPREADSHEET_ID = os.getenv("SPREADSHEET_ID", "")
GOOGLE_SERVICE_ACCOUNT_JSON = os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON", "")
GOOGLE_CLIENT_EMAIL = os.getenv("GOOGLE_CLIENT_EMAIL", "")
GOOGLE_PRIVATE_KEY = os.getenv("GOOGLE_PRIVATE_KEY", "")
GOOGLE_PROJECT_ID = os.getenv("GOOGLE_PROJECT_ID", "")
SHEETS_TIMEOUT_SECONDS = float(os.getenv("SHEETS_TIMEOUT_SECONDS", 25))

ROSTER_SHEET = os.getenv("ROSTER_SHEET", "CONTROLE MAQUININHAS PAGSEGURO - INGRESSE")
HISTORY_SHEET = os.getenv("HISTORY_SHEET", "HISTORICO MAQUINAS")
EVENTS_SHEET = os.getenv("EVENTS_SHEET", "DADOS EVENTOS")

ROSTER_CACHE_TTL_SECONDS = float(os.getenv("ROSTER_CACHE_TTL_SECONDS", 15))
EVENT_CACHE_TTL_SECONDS = float(os.getenv("EVENT_CACHE_TTL_SECONDS", 300))
APP_TIMEZONE = os.getenv("APP_TIMEZONE", "America/Sao_Paulo")
DEFAULT_ACTOR = os.getenv("DEFAULT_ACTOR", "Sistema")


def parse_cors_origins(value: str):
    if not value:
        return []
    if value.strip() == "*":
        return ["*"]
    return [origin.strip() for origin in value.split(",") if origin.strip()]
