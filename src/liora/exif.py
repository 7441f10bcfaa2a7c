import os
from datetime import datetime
from pathlib import Path

import piexif
from PIL import Image

# Constants for EXIF settings
GENERATOR_MAKE = "fal.ai"
SOFTWARE = "liora"
ORIENTATION_NORMAL = 1


def tag_generated_image(image_path, endpoint: str, prompt: str, *, file_time: datetime | None = None,
                        quiet: bool = True) -> bool:
    """Record where a downloaded image came from in fresh EXIF metadata.

    Make is the generation service, Model the fal.ai endpoint that produced
    the image and ImageDescription the prompt that was sent.

    Args:
        image_path (Path | str): Image file to update in place.
        endpoint: Resolved fal.ai endpoint identifier.
        prompt: Prompt sent to the endpoint.
        file_time: Timestamp for the date fields. If None, the file's mtime is used.
        quiet: If True, suppresses print messages. If False, prints status.

    Returns:
        bool: True on success, False on failure (including missing file).
    """
    p = Path(image_path)

    if not p.exists():
        if not quiet:
            print(f"File not found: {p}")
        return False

    try:
        img = Image.open(p)
    except Exception as e:
        if not quiet:
            print(f"Can't open image {p}: {e}")
        return False

    exif_dict = {"0th": {}, "Exif": {}, "GPS": {}, "Interop": {}, "1st": {}, "thumbnail": None}

    if file_time is None:
        file_time = datetime.fromtimestamp(os.path.getmtime(p))
    formatted_date = file_time.strftime("%Y:%m:%d %H:%M:%S").encode()

    exif_dict["0th"][piexif.ImageIFD.Make] = GENERATOR_MAKE.encode()
    exif_dict["0th"][piexif.ImageIFD.Model] = endpoint.encode()
    exif_dict["0th"][piexif.ImageIFD.Software] = SOFTWARE.encode()
    # ImageDescription is ASCII in EXIF; drop what does not fit
    exif_dict["0th"][piexif.ImageIFD.ImageDescription] = prompt.encode("ascii", "replace")
    exif_dict["0th"][piexif.ImageIFD.Orientation] = ORIENTATION_NORMAL

    exif_dict["Exif"][piexif.ExifIFD.DateTimeOriginal] = formatted_date
    exif_dict["Exif"][piexif.ExifIFD.DateTimeDigitized] = formatted_date

    try:
        exif_bytes = piexif.dump(exif_dict)
        img.save(p, exif=exif_bytes)
        if not quiet:
            print(f"Updated EXIF data for {p}")
        return True
    except Exception as e:
        if not quiet:
            print(f"Error updating EXIF data for {p}: {e}")
        return False
