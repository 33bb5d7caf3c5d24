from fastapi import APIRouter

from pushgate.schemas import VapidKeysRead
from pushgate.services.keys import generate_key_pair

router = APIRouter()


@router.post("/keys", response_model=VapidKeysRead, summary="Generate VAPID key pair")
def create_vapid_keys() -> VapidKeysRead:
    """Generate a P-256 key pair for a test client. Nothing is stored server-side."""
    pair = generate_key_pair()
    return VapidKeysRead(public_key=pair.public_key_b64url, private_key=pair.private_key_b64)
