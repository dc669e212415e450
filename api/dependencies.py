import logging
from datetime import timedelta
from functools import lru_cache

from fastapi import HTTPException

from api.services.review_service import ReviewService
from common.errors import AuthenticationError, AuthFailure
from common.github_client import GitHubClient
from common.token_cache import GitHubAppTokenExchange, TokenCache, load_private_key
from reviewer.agent.review_pipeline import FileReviewer
from reviewer.config import config
from reviewer.model_client import OllamaClient
from reviewer.static_analysis import StaticAnalyzer

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_token_cache() -> TokenCache:
    """Process-wide installation token cache built from the GitHub App settings."""
    if config.github_app_id is None:
        raise AuthenticationError(
            "GITHUB_APP_ID is not configured",
            app_id=None,
            failure=AuthFailure.NOT_CONFIGURED,
        )
    private_key = load_private_key(
        config.github_app_private_key_path,
        config.github_app_private_key,
        app_id=config.github_app_id,
    )
    exchange = GitHubAppTokenExchange(config.github_app_id, private_key, base_url=config.github_api_url)
    return TokenCache(exchange, refresh_buffer=timedelta(seconds=config.token_refresh_buffer_seconds))


@lru_cache(maxsize=1)
def _build_review_service() -> ReviewService:
    github = GitHubClient(get_token_cache(), base_url=config.github_api_url)
    model_client = OllamaClient(
        config.ollama_url,
        config.ai_model,
        temperature=config.ai_temperature,
        max_tokens=config.ai_max_tokens,
        timeout=config.ai_timeout_seconds,
    )
    analyzer = StaticAnalyzer(
        eslint_enabled=config.eslint_enabled,
        flake8_enabled=config.flake8_enabled,
    )
    return ReviewService(github, FileReviewer(model_client, config), analyzer, config)


def get_review_service() -> ReviewService:
    """Shared review service; 503 when the GitHub App credentials are unusable."""
    try:
        return _build_review_service()
    except AuthenticationError as e:
        logger.error(f"Review service unavailable: {e}")
        raise HTTPException(status_code=503, detail=f"GitHub App is misconfigured: {e.failure.value}")
