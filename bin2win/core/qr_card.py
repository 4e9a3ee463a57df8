"""
Printable QR cards for users and booths.

The card carries the QR code, a Code128 barcode of the backup code for
handheld scanners, and the title lines. Rendering is done in memory with
Pillow and the result is returned as a base64 PNG data URL.
"""
import base64
import io
import logging
from typing import Optional

import barcode
import qrcode
from barcode.writer import ImageWriter
from PIL import Image, ImageDraw, ImageFont

logger = logging.getLogger(__name__)


def _load_fonts():
    try:
        return (
            ImageFont.truetype('/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf', 20),
            ImageFont.truetype('/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf', 14),
        )
    except (OSError, IOError):
        try:
            return ImageFont.truetype('arial.ttf', 20), ImageFont.truetype('arial.ttf', 14)
        except (OSError, IOError):
            return ImageFont.load_default(), ImageFont.load_default()


def _draw_centered(draw, width, y, text, font):
    bbox = draw.textbbox((0, 0), text, font=font)
    text_width = bbox[2] - bbox[0]
    draw.text(((width - text_width) // 2, y), text, fill='black', font=font)
    return bbox[3] - bbox[1]


def render_qr_image(qr_value: str, box_size: int = 8) -> Image.Image:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=2,
    )
    qr.add_data(qr_value)
    qr.make(fit=True)
    return qr.make_image(fill_color='black', back_color='white').convert('RGB')


def generate_qr_card(
    title: str,
    qr_value: str,
    subtitle: Optional[str] = None,
    backup_code: Optional[str] = None,
    width: int = 400,
    height: int = 560,
) -> str:
    """
    Render a QR card.

    Args:
        title: first line, e.g. the user's name or the booth name
        qr_value: value encoded in the QR code
        subtitle: optional second line (username, booth area)
        backup_code: optional manual-entry code, printed and encoded as Code128

    Returns:
        Base64-encoded PNG image as data URL string
    """
    if len(title) > 30:
        title = title[:30] + '...'

    img = Image.new('RGB', (width, height), color='white')
    draw = ImageDraw.Draw(img)
    font_large, font_small = _load_fonts()
    margin = 16

    y = margin
    y += _draw_centered(draw, width, y, title, font_large) + 8
    if subtitle:
        y += _draw_centered(draw, width, y, subtitle, font_small) + 8

    qr_img = render_qr_image(qr_value)
    qr_size = min(width - 2 * margin, 300)
    qr_img = qr_img.resize((qr_size, qr_size), Image.Resampling.NEAREST)
    img.paste(qr_img, ((width - qr_size) // 2, y))
    y += qr_size + 6
    y += _draw_centered(draw, width, y, qr_value, font_small) + 10

    if backup_code:
        try:
            code128 = barcode.get_barcode_class('code128')
            barcode_img = code128(backup_code, writer=ImageWriter()).render({
                'write_text': False,
                'module_width': 0.3,
                'module_height': 12.0,
                'quiet_zone': 2.0,
                'background': 'white',
                'foreground': 'black',
            })
            available_height = max(20, height - y - 40)
            barcode_width = width - 2 * margin
            scale = barcode_width / barcode_img.size[0]
            scaled_height = min(int(barcode_img.size[1] * scale), available_height)
            barcode_img = barcode_img.resize((barcode_width, scaled_height), Image.Resampling.BILINEAR)
            img.paste(barcode_img, (margin, y))
            y += scaled_height + 4
        except Exception as e:
            # The QR code alone is still a usable card
            logger.error(f"Barcode generation failed for backup code '{backup_code}': {str(e)}")
        _draw_centered(draw, width, y, f'Backup code: {backup_code}', font_small)

    buffer = io.BytesIO()
    img.save(buffer, format='PNG', optimize=False, compress_level=1)
    image_base64 = base64.b64encode(buffer.getvalue()).decode('utf-8')
    buffer.close()
    img.close()
    return f'data:image/png;base64,{image_base64}'
