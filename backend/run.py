import uvicorn
import sys
from pathlib import Path


def main():
    """
    Run the FastAPI application using uvicorn
    """
    current_dir = Path(__file__).parent

    # Make the listings package importable when run from a checkout
    sys.path.append(str(current_dir))

    uvicorn.run(
        "listings.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=True,
        reload_dirs=[str(current_dir / "listings")]
    )


if __name__ == "__main__":
    main()
