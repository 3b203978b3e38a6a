"""
Ponto de entrada principal da aplicação
Configura o logging e executa a API FastAPI
"""
import logging
import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "info")

logging.basicConfig(
    level=LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

from web_api import app  # noqa: E402

# A porta vem da variável PORT no deploy
port = int(os.getenv("PORT", 8000))

if __name__ == "__main__":
    import uvicorn

    logging.getLogger(__name__).info("Iniciando Painel Financeiro na porta %s", port)

    uvicorn.run(
        "web_api:app",
        host="0.0.0.0",
        port=port,
        reload=False,
        log_level=LOG_LEVEL.lower()
    )
