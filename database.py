from supabase import create_client, Client
from typing import Optional
import logging
import os
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_ANON_KEY")


def get_supabase_client() -> Optional[Client]:
    """Cria o cliente Supabase a partir do .env (None quando não configurado)"""
    if not SUPABASE_URL or not SUPABASE_KEY:
        logger.warning(
            "SUPABASE_URL e SUPABASE_ANON_KEY não encontradas no .env; "
            "operações de banco ficarão indisponíveis"
        )
        return None
    return create_client(SUPABASE_URL, SUPABASE_KEY)


supabase: Optional[Client] = get_supabase_client()
