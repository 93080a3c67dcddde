import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

# ---------------------
# Database
# ---------------------
DB_HOST = os.getenv("DB_HOST", "127.0.0.1")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME", "koperasi")
DB_USER = os.getenv("DB_USER", "koperasi")
DB_PASS = os.getenv("DB_PASS", "koperasi")

# Fix the None / empty / "None" port issue
if not DB_PORT or str(DB_PORT).lower() == "none":
    DB_PORT = "5432"

# A full URL wins over the parts (e.g. sqlite:///./koperasi.db for local runs)
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+psycopg2://{DB_USER}:{DB_PASS}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)

# ---------------------
# Loan accounting
# ---------------------
# Extra amount a loan may be overpaid by, on top of the installment rounding
# slack. Overridden at runtime by the OVERPAYMENT_TOLERANCE system setting.
OVERPAYMENT_TOLERANCE = Decimal(os.getenv("OVERPAYMENT_TOLERANCE", "0"))

# ---------------------
# Logging / server
# ---------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "standard")

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173",
    ).split(",")
    if o.strip()
]

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
