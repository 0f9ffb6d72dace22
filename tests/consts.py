TEST_REGION = "us-east-1"
TEST_CLUSTER = "prod"
TEST_SERVICE = "api"
TEST_REPOSITORY = "app"
TEST_TAG = "release"
TEST_DIGEST = "sha256:4f1a9c7e2b3d5a6f8e9d0c1b2a3f4e5d6c7b8a9f0e1d2c3b4a5f6e7d8c9b0a1f"
