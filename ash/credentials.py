import os
import json
import logging

from google.oauth2.credentials import Credentials
from google.auth.transport.requests import Request
from googleapiclient.discovery import build

from ash.config import TOKENS_DIR, SCOPES

logger = logging.getLogger(__name__)


def token_path(user_id: str) -> str:
    return os.path.join(TOKENS_DIR, f"{user_id}.json")


def load_creds(user_id: str) -> Credentials | None:
    p = token_path(user_id)
    if not os.path.exists(p): return None
    with open(p) as f:
        data = json.load(f)
    return Credentials.from_authorized_user_info(data, SCOPES)


def service_for(user_id: str, api: str, version: str):
    """
    Build an authenticated Google API client for the given user_id.
    Requires stored authorized-user tokens at tokens/<user_id>.json.
    """
    creds = load_creds(user_id)
    if not creds:
        raise ValueError(f"Google not connected for user {user_id}")
    if not creds.valid and creds.refresh_token:
        logger.debug("Refreshing Google access token for %s", user_id)
        creds.refresh(Request())
    return build(api, version, credentials=creds, cache_discovery=False)
