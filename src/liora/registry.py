# ------------------------------ Endpoint registry ------------------------------

DEFAULT_FAL_ENDPOINT = "fal-ai/flux/dev"

# Text prompt only. Holds image and video producing endpoints alike; the
# requested name picks between them.
TEXT_TO_OUTPUT_ENDPOINTS = (
    "fal-ai/nano-banana",
    "fal-ai/veo3",
    "fal-ai/bytedance/seedream/v4/text-to-image",
    "fal-ai/kling-video/v2/master/text-to-video",
    "fal-ai/ideogram/v3",
    "fal-ai/flux/dev",
    "fal-ai/flux/schnell",
)

# Source image in, image out
IMAGE_TO_IMAGE_ENDPOINTS = (
    "fal-ai/flux/dev/image-to-image",
    "fal-ai/nano-banana/edit",
    "fal-ai/bytedance/seedream/v4/edit",
    "fal-ai/ideogram/v3/remix",
)

# Source image in, video out
IMAGE_TO_VIDEO_ENDPOINTS = (
    "fal-ai/kling-video/v2/master/image-to-video",
    "fal-ai/veo2/image-to-video",
    "fal-ai/bytedance/seedance/v1/pro/image-to-video",
)

CATALOG_DEFAULTS = {
    TEXT_TO_OUTPUT_ENDPOINTS: DEFAULT_FAL_ENDPOINT,
    IMAGE_TO_IMAGE_ENDPOINTS: "fal-ai/flux/dev/image-to-image",
    IMAGE_TO_VIDEO_ENDPOINTS: "fal-ai/kling-video/v2/master/image-to-video",
}

OUTPUT_TYPES = ("image", "video")

# Request field carrying the source image. Endpoints not listed take a single
# "image_url"; the edit models accept several references as a list.
IMAGE_INPUT_FIELDS = {
    "fal-ai/nano-banana/edit": "image_urls",
    "fal-ai/bytedance/seedream/v4/edit": "image_urls",
}


def image_arguments(endpoint: str, image_url: str) -> dict:
    """Return the request fields that pass image_url to endpoint."""
    field = IMAGE_INPUT_FIELDS.get(endpoint, "image_url")
    if field == "image_urls":
        return {field: [image_url]}
    return {field: image_url}
