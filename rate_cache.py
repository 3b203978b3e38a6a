import logging
import os
import time
from typing import Callable, Dict, Optional, Tuple

import redis
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


class RateCache:
    """
    Cache de cotações de câmbio com expiração.

    Usa Redis quando REDIS_URL está configurada (cache compartilhado entre
    processos); caso contrário, ou se a conexão falhar, usa memória local.
    """
    def __init__(
        self,
        redis_url: Optional[str] = None,
        key_prefix: str = "fx:",
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            redis_url: URL de conexão Redis (padrão: variável REDIS_URL)
            key_prefix: Prefixo para chaves no Redis
            clock: Relógio usado pela expiração em memória
        """
        self.key_prefix = key_prefix
        self._clock = clock
        self._local_cache: Dict[str, Tuple[float, float]] = {}
        self.redis_client = None

        if redis_url is None:
            redis_url = os.getenv("REDIS_URL")

        if redis_url:
            try:
                self.redis_client = redis.from_url(
                    redis_url,
                    decode_responses=True,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                )
                self.redis_client.ping()
                logger.info("Cache de cotações conectado ao Redis")
            except (redis.ConnectionError, redis.TimeoutError) as e:
                logger.warning("Erro ao conectar Redis (%s); usando memória local", e)
                self.redis_client = None

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def get(self, key: str) -> Optional[float]:
        """Retorna a cotação em cache ou None se ausente/expirada"""
        if self.redis_client:
            try:
                value = self.redis_client.get(self._key(key))
                return float(value) if value is not None else None
            except redis.RedisError as e:
                logger.warning("Erro ao ler cotação do Redis: %s", e)

        entry = self._local_cache.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._local_cache[key]
            return None
        return value

    def set(self, key: str, value: float, ttl: int) -> None:
        """Salva a cotação por ttl segundos"""
        if self.redis_client:
            try:
                self.redis_client.setex(self._key(key), ttl, repr(value))
                return
            except redis.RedisError as e:
                logger.warning("Erro ao salvar cotação no Redis: %s", e)

        self._local_cache[key] = (value, self._clock() + ttl)

    def clear(self) -> None:
        self._local_cache.clear()
