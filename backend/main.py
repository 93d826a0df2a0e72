# backend/main.py
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from config import settings
from database import init_db
from utils.errors import register_exception_handlers

load_dotenv()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Routers
from routes.auth import router as auth_router
from routes.users import router as users_router
from routes.admin import router as admin_router
from routes.logs import router as logs_router
from routes.addresses import router as addresses_router
from routes.restaurants import router as restaurants_router
from routes.cart import router as cart_router
from routes.orders import router as orders_router
from routes.ratings import router as ratings_router

# Local runs get their tables without migrations
init_db()

app = FastAPI(title="Food Ordering API", version="1.0.0")

# CORS: local frontend dev servers plus the configured deployment
origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
if settings.FRONTEND_URL and settings.FRONTEND_URL not in origins:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(auth_router)
# Before the admin router: /users/deactivate must not match /users/{user_id}
app.include_router(users_router)
app.include_router(admin_router)
app.include_router(logs_router)
app.include_router(addresses_router)
app.include_router(restaurants_router)
app.include_router(cart_router)
app.include_router(orders_router)
app.include_router(ratings_router)


@app.get("/")
def read_root():
    return {"message": "Food Ordering API is running"}
