"""Constants shared by the server modules."""

ROOT_FOLDER_ID = 0
"""Parent id used for folders and files that live directly under `/`."""

ROOT_PATH = "/"

PATH_SEPARATOR = "/"

FORBIDDEN_NAME_CHARS = ("/", "\\")

RESERVED_NAMES = (".", "..")

CHUNK_SIZE = 64 * 1024
"""Read and write chunk size for file content."""

DOWNLOAD_URL_TEMPLATE = "/files/{file_id}/download"

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 200

SHARED_URL_TEMPLATE = "/shared/{token}"

SHARED_LINK_TOKEN_BYTES = 16
