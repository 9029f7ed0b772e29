from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    FIREBASE_KEY_PATH: Optional[str] = "serviceAccountKey.json"
    FIREBASE_JSON: Optional[str] = None

    # collections
    MESSAGES_COLLECTION: str = "messages"
    CHATS_COLLECTION: str = "chats"
    BOOKINGS_COLLECTION: str = "bookings"
    PAYMENTS_COLLECTION: str = "payments"
    PAYMENT_HISTORY_COLLECTION: str = "paymentHistory"
    DESIGNS_COLLECTION: str = "parkingDesigns"

    # parking lot
    SLOT_COUNT: int = 50
    DEFAULT_SLOT_PRICE: float = 5.00
    BASE_RATE_PER_HOUR: float = 200
    OVERTIME_RATE_PER_HOUR: float = 300
    LOG_FILE: Optional[str] = "app.log"

    class Config:
        env_file = ".env"

settings = Settings()
