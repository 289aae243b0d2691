# =============================================================================
# Remote service
# =============================================================================

API_KEY_HEADER = "api-key"
UPLOAD_FIELD_NAME = "file"
SUCCESS_STATUS = "success"

# Result artifact name on the service -> local file extension
ARTIFACT_EXTENSIONS = {
    "txt": ".txt",
    "alto": ".xml",
}

# =============================================================================
# Error Handling
# =============================================================================

ERROR_BODY_MAX_CHARS = 200  # Maximum chars from error response bodies
