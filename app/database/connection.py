import firebase_admin, json, logging
from firebase_admin import credentials, firestore
from app.config.settings import settings

logger = logging.getLogger(__name__)

_db = None


def init_firebase():
    # Initialize Firebase App
    if not firebase_admin._apps:

        if settings.FIREBASE_JSON:
            # Running on a hosted environment, credentials come from env
            cred_dict = json.loads(settings.FIREBASE_JSON)
            cred = credentials.Certificate(cred_dict)

        else:
            # Running LOCALLY → load from file
            cred = credentials.Certificate(settings.FIREBASE_KEY_PATH)

        firebase_admin.initialize_app(cred)
        logger.info("Firebase app initialized")


def get_db():
    """FastAPI dependency returning the shared Firestore client."""
    global _db
    if _db is None:
        init_firebase()
        _db = firestore.client()
    return _db
