from enum import Enum


class LinkType(str, Enum):
    GOOGLE_DRIVE = "google_drive"
    MEGA = "mega"
    MEDIAFIRE = "mediafire"
    DROPBOX = "dropbox"
    STREAM = "stream"
    DOWNLOAD = "download"


# Matched against the URL hostname (exact or subdomain), in order; first match wins.
FILE_HOST_DOMAINS: tuple[tuple[str, LinkType], ...] = (
    ("drive.google.com", LinkType.GOOGLE_DRIVE),
    ("drive.usercontent.google.com", LinkType.GOOGLE_DRIVE),
    ("mega.nz", LinkType.MEGA),
    ("mega.co.nz", LinkType.MEGA),
    ("mega.io", LinkType.MEGA),
    ("mediafire.com", LinkType.MEDIAFIRE),
    ("dropbox.com", LinkType.DROPBOX),
    ("dropboxusercontent.com", LinkType.DROPBOX),
)


class YouTube:
    THUMBNAIL_URL = "https://i.ytimg.com/vi/{video_id}/maxresdefault.jpg"
    WATCH_URL = "https://www.youtube.com/watch?v={video_id}"
    SAMPLE_URL = "https://youtu.be/ArkDQvI_OPE"
    SUPPORTED_FORMATS = (
        "https://www.youtube.com/watch?v=VIDEO_ID",
        "https://youtu.be/VIDEO_ID",
        "https://www.youtube.com/embed/VIDEO_ID",
    )


class Miner:
    MIN_LINK_TEXT_LENGTH = 5
    SYNOPSIS_MAX_CHARS = 300
