"""Start the import API locally with uvicorn."""
import os
import sys

import uvicorn

os.environ.setdefault('DEPLOYMENT_MODE', 'local')

print("Starting Weekly Picks import API (Local Mode)...")
print("-" * 50)

try:
    from weekly_picks.config import settings
    from sqlalchemy.engine import make_url

    database_url = settings.get('DATABASE_URL', '')
    print("✓ Configuration loaded")
    print(f"  Deployment mode: {settings.get('DEPLOYMENT_MODE', 'local')}")
    if database_url:
        print(f"  Database: {make_url(database_url).render_as_string(hide_password=True)}")
    else:
        print("  Database: ✗ DATABASE_URL missing")

    from weekly_picks.main import app
    print("✓ FastAPI app imported")

    print("\nStarting server on http://localhost:8000")
    print("API documentation at: http://localhost:8000/docs")
    print("-" * 50)

    uvicorn.run(app, host="0.0.0.0", port=8000, reload=False)

except KeyboardInterrupt:
    print("\nServer stopped by user")
except Exception as e:
    print(f"\n❌ Failed to start server: {e}")
    import traceback
    traceback.print_exc()
    sys.exit(1)
