import uvicorn, logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config.settings import settings
from app.routes.message_route import router as message_route
from app.routes.dashboard_route import router as dashboard_route

handlers = [logging.StreamHandler()]
if settings.LOG_FILE:
    handlers.append(logging.FileHandler(settings.LOG_FILE))

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=handlers
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="ParkEase Admin API",
    description="Parking lot admin dashboard: slots, bookings, payments and customer conversations",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# register the routes
app.include_router(message_route, prefix="/messages")
app.include_router(dashboard_route, prefix="/dashboard")

@app.get("/")
def root():
    return {"message": "Parking admin backend is running"}


if __name__ == "__main__" :
    uvicorn.run(app, host = "0.0.0.0", port = 9090, log_level = "info")
