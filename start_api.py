"""
Simple startup script for the FastAPI application
"""
import os
import sys
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def check_environment():
    """Check if all required environment variables are set"""
    required_vars = [
        'DATABASE_URL'
    ]

    missing_vars = []
    for var in required_vars:
        if not os.getenv(var):
            missing_vars.append(var)

    if missing_vars:
        logger.error("❌ Missing required environment variables:")
        for var in missing_vars:
            logger.error(f"   - {var}")
        logger.error("\nPlease set these variables in your .env file")
        return False

    logger.info("✅ All required environment variables are set")
    return True


def main():
    """Main startup function"""
    if not check_environment():
        logger.error("\n❌ Environment check failed. Exiting.")
        sys.exit(1)

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 8000))

    logger.info(f"\n🌐 Starting server on http://{host}:{port}")
    logger.info(f"📚 API Documentation: http://{host}:{port}/docs")
    logger.info(f"❤️  Health Check: http://{host}:{port}/health\n")

    try:
        import uvicorn
        uvicorn.run(
            "api_main:app",
            host=host,
            port=port,
            log_level="info"
        )
    except KeyboardInterrupt:
        logger.info("\n\n👋 Server stopped by user")


if __name__ == "__main__":
    main()
