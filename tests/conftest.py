import os
import sys
from pathlib import Path

# Get the absolute path to the project root
project_root = Path(__file__).parent.parent

# Add the src directory to Python path
src_path = project_root / "src"
sys.path.insert(0, str(src_path))

# Keep boto3 away from real credentials and regions
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["AWS_DEFAULT_REGION"] = "eu-west-1"
os.environ.pop("AWS_PROFILE", None)
