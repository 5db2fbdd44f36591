from fastapi import FastAPI, HTTPException

from article_markdown.api import create_app

try:
    app = create_app(require_enabled=True)
except RuntimeError:
    app = FastAPI(title="Article Markdown", version="0.1.0")

    @app.get("/")
    async def api_disabled() -> dict[str, str]:
        raise HTTPException(
            status_code=503,
            detail="Local API disabled. Enable by setting enable_local_api = true in config.toml "
            "or ARTICLE_MD_ENABLE_LOCAL_API=1",
        )
