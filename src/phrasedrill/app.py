"""HTTP server lifecycle."""
import asyncio
import logging
from typing import Optional

import uvicorn

from phrasedrill.api import create_app
from phrasedrill.config import settings
from phrasedrill.models.base import Database
from phrasedrill.monitoring import start_monitoring
from phrasedrill.services.explanation_service import ExplanationService


class PhraseDrillServer:
    """Main application class."""

    def __init__(self, database: Optional[Database] = None, host: Optional[str] = None,
                 port: Optional[int] = None):
        """Initialize the application."""
        self.database = database or Database()
        self.host = host or settings.api.host
        self.port = port or settings.api.port
        self.server: Optional[uvicorn.Server] = None
        self.running = False
        self.logger = logging.getLogger(__name__)

    async def start(self) -> None:
        """Prepare the database and the ASGI server."""
        if self.running:
            return

        try:
            self.database.initialize()
            self.logger.info("Database initialized")

            if settings.api.metrics_port:
                start_monitoring(settings.api.metrics_port)
                self.logger.info(f"Metrics exposed on port {settings.api.metrics_port}")

            explanation_service = ExplanationService() if settings.explanation.api_key else None
            if explanation_service is None:
                self.logger.warning("OPENAI_API_KEY not set, explanations are disabled")

            app = create_app(self.database, explanation_service)
            config = uvicorn.Config(app, host=self.host, port=self.port, log_config=None)
            self.server = uvicorn.Server(config)
            self.running = True
            self.logger.info(f"Server ready on http://{self.host}:{self.port}")

        except Exception as e:
            self.logger.error("Failed to start application: %s", str(e))
            await self.stop()
            raise

    async def serve(self) -> None:
        """Start and serve until the server is asked to exit."""
        await self.start()
        try:
            await self.server.serve()
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop the server and close the database."""
        if self.server is not None:
            self.server.should_exit = True
            self.server = None
            self.logger.info("Server stopped")

        self.database.close()
        self.running = False

    def run(self) -> None:
        """Run the server until interrupted."""
        try:
            asyncio.run(self.serve())
        except KeyboardInterrupt:
            self.logger.info("Received keyboard interrupt")


def main() -> None:
    """Main entry point."""
    PhraseDrillServer().run()


if __name__ == "__main__":
    main()
