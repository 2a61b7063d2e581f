"""
Simple script to run the Nirman server.
"""
import uvicorn

from nirman.config import NIRMAN_DEPLOYMENT

if __name__ == "__main__":
    print(f"Starting Nirman ({NIRMAN_DEPLOYMENT})...")
    print("API at: http://127.0.0.1:8000/api")
    print("Docs at: http://127.0.0.1:8000/docs")
    print("Press Ctrl+C to stop")
    print("-" * 40)

    uvicorn.run(
        "nirman.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True
    )
