ELEMENT_TYPE_IMAGE = "image"
ELEMENT_TYPE_RECTANGLE = "rectangle"
ELEMENT_TYPE_TEXT = "text"

CLIP_NONE = "none"
CLIP_CIRCLE = "circle"
VALID_CLIPS = {CLIP_NONE, CLIP_CIRCLE}

ALIGN_LEFT = "left"
ALIGN_RIGHT = "right"
ALIGN_CENTER = "center"
VALID_ALIGNS = {ALIGN_LEFT, ALIGN_RIGHT, ALIGN_CENTER}

DEFAULT_COLOR = "#000000"
DEFAULT_FONT_SIZE = 24
BRAND_FONT_FAMILY = "DB-Adman-X"
GENERIC_FONT_FAMILY = "sans-serif"

DEFAULT_CANVAS_SIZE = (1080, 1080)
DEFAULT_BLANK_FILL = "#FFFFFF"

REMOTE_PREFIXES = ("http://", "https://")
TEMPLATE_EXTENSIONS = (".json", ".yaml", ".yml")
