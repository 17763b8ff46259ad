# routes/auth.py
from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pymongo.errors import DuplicateKeyError
from datetime import datetime, timedelta
import bcrypt
import logging

import config
from database import get_db
from models.user import LoginRequest, RegisterRequest, UserProfile
from services.common import new_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user_id: str) -> str:
    expire = datetime.utcnow() + timedelta(minutes=config.JWT_EXPIRE_MINUTES)
    return jwt.encode({"id": user_id, "exp": expire}, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def public_user(user: dict) -> dict:
    return UserProfile(**user).model_dump()


async def get_current_user(token: str = Depends(oauth2_scheme), db=Depends(get_db)):
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError as e:
        logger.error(f"JWTError: {str(e)}")
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id = payload.get("id")
    if not user_id:
        logger.error("Invalid token: Missing user id")
        raise HTTPException(status_code=401, detail="Invalid token")

    user = await db.users.find_one({"id": user_id}, {"_id": 0, "password": 0})
    if not user:
        logger.warning(f"User not found for id: {user_id}")
        raise HTTPException(status_code=401, detail="User not found")
    return user


@router.post("/register", status_code=201)
async def register(request: RegisterRequest, db=Depends(get_db)):
    email = request.email.strip().lower()
    logger.info(f"Registration attempt for email: {email}")
    if await db.users.find_one({"email": email}, {"_id": 0, "id": 1}):
        raise HTTPException(status_code=400, detail="Email is already registered")

    user_dict = {
        "id": new_id(),
        "firstName": request.firstName.strip(),
        "lastName": request.lastName.strip(),
        "email": email,
        "password": hash_password(request.password),
        "quizzesCreated": [],
        "quizzesTaken": [],
        "createdAt": datetime.utcnow(),
    }
    try:
        await db.users.insert_one(user_dict)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Email is already registered")

    return {
        "success": True,
        "message": "User registered successfully",
        "data": {"user": public_user(user_dict), "access_token": create_access_token(user_dict["id"])},
    }


@router.post("/login")
async def login(request: LoginRequest, db=Depends(get_db)):
    email = request.email.strip().lower()
    logger.info(f"Login attempt for email: {email}")

    user = await db.users.find_one({"email": email}, {"_id": 0})
    if not user or not verify_password(request.password, user.get("password", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return {
        "success": True,
        "message": "Login successful",
        "data": {"user": public_user(user), "access_token": create_access_token(user["id"])},
    }


@router.get("/current-user")
async def get_current_user_endpoint(current_user: dict = Depends(get_current_user)):
    return {"success": True, "data": {"user": public_user(current_user)}}
