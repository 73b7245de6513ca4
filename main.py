import uvicorn

from qc_tracker.core.config import Settings
from qc_tracker.factory import create_app

settings = Settings()
app = create_app(settings)


if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.app_host, port=settings.app_port, reload=False)
