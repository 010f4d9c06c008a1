import logging
import os

from PIL import Image, ImageDraw, ImageFont

logger = logging.getLogger(__name__)

CURRENCY_LABEL = os.environ.get('RETAIL_CURRENCY', 'FCFA')
STORE_NAME = os.environ.get('RETAIL_STORE_NAME', 'AlimStock')
RECEIPTS_DIR = os.environ.get('RETAIL_RECEIPTS_DIR') or os.path.join(
    os.path.dirname(os.path.abspath(__file__)), 'receipts')


def format_amount(value):
    return f"{int(value):,} {CURRENCY_LABEL}"


def text_size(draw_obj, text, font):
    bbox = draw_obj.textbbox((0, 0), text, font=font)
    return (bbox[2] - bbox[0], bbox[3] - bbox[1])


def wrap_text(draw_obj, text, font, max_w):
    """Split ``text`` into lines no wider than ``max_w`` pixels."""
    words = (text or '').split()
    if not words:
        return ['']
    lines = []
    cur = words[0]
    for w in words[1:]:
        tw, _ = text_size(draw_obj, cur + ' ' + w, font)
        if tw <= max_w:
            cur = cur + ' ' + w
        else:
            lines.append(cur)
            cur = w
    lines.append(cur)
    return lines


class ReceiptGenerator:
    @staticmethod
    def _load_font(size):
        # Try common system fonts, fallback to default
        candidates = ["arial.ttf", "DejaVuSans.ttf", "LiberationSans-Regular.ttf"]
        for f in candidates:
            try:
                return ImageFont.truetype(f, size)
            except OSError:
                continue
        return ImageFont.load_default()

    @staticmethod
    def generate(sale, names=None, receipts_dir=None):
        """Render a PNG receipt for a committed sale and return its path.

        ``names`` maps product ids to display names captured by the caller;
        ids without a name (e.g. products removed since) are printed as is.
        Amounts come from the sale itself, never from the live catalog.
        """
        names = names or {}
        receipts_dir = receipts_dir or RECEIPTS_DIR
        os.makedirs(receipts_dir, exist_ok=True)
        png_path = os.path.join(receipts_dir, f"{sale.id}.png")

        width = 640
        header_h = 150
        line_h = 24
        footer_h = 120
        x = 32

        f_head = ReceiptGenerator._load_font(26)
        f_sub = ReceiptGenerator._load_font(15)
        f_body = ReceiptGenerator._load_font(14)
        f_mono = ReceiptGenerator._load_font(12)

        col_total_right = width - x
        col_price_right = col_total_right - 130
        col_qty_center = col_price_right - 110
        item_col_w = max(80, int(col_qty_center - x) - 30)

        # Measure wrapped item names first so the image height is exact
        tmp_draw = ImageDraw.Draw(Image.new('RGB', (1, 1)))
        prepared = []
        items_h = 0
        for item in sale.items:
            lines = wrap_text(tmp_draw, str(names.get(item.product_id, item.product_id)), f_mono, item_col_w)
            block_h = len(lines) * line_h + 6
            items_h += block_h
            prepared.append((lines, str(item.quantity), f"{item.price_at_sale:,}", f"{item.line_total:,}"))
        items_h = max(120, items_h + 20)
        height = header_h + items_h + footer_h

        img = Image.new('RGB', (width, height), color=(255, 255, 255))
        draw = ImageDraw.Draw(img)

        y = 24
        draw.text((x, y), STORE_NAME, font=f_head, fill=(20, 20, 20))
        y += 38
        draw.text((x, y), f"Sale #: {sale.id}", font=f_sub, fill=(0, 0, 0))
        y += 22
        draw.text((x, y), f"Date: {sale.timestamp.strftime('%Y-%m-%d %H:%M:%S')}", font=f_body, fill=(0, 0, 0))
        y += 22
        draw.text((x, y), f"Payment: {sale.payment_method or '-'}", font=f_body, fill=(0, 0, 0))
        y += 26
        draw.line((x, y, width - x, y), fill=(200, 200, 200), width=1)
        y += 10

        # Column headers
        draw.text((x, y), "Item", font=f_mono, fill=(0, 0, 0))
        tw, _ = text_size(draw, "Qty", f_mono)
        draw.text((col_qty_center - tw / 2, y), "Qty", font=f_mono, fill=(0, 0, 0))
        tw, _ = text_size(draw, "Price", f_mono)
        draw.text((col_price_right - tw, y), "Price", font=f_mono, fill=(0, 0, 0))
        tw, _ = text_size(draw, "Total", f_mono)
        draw.text((col_total_right - tw, y), "Total", font=f_mono, fill=(0, 0, 0))
        y += 18
        draw.line((x, y, width - x, y), fill=(230, 230, 230), width=1)
        y += 8

        for lines, qty, price, total in prepared:
            for i, ln in enumerate(lines):
                draw.text((x, y), ln, font=f_mono, fill=(20, 20, 20))
                if i == 0:
                    qw, _ = text_size(draw, qty, f_mono)
                    draw.text((col_qty_center - qw / 2, y), qty, font=f_mono, fill=(20, 20, 20))
                    pw, _ = text_size(draw, price, f_mono)
                    draw.text((col_price_right - pw, y), price, font=f_mono, fill=(20, 20, 20))
                    tw, _ = text_size(draw, total, f_mono)
                    draw.text((col_total_right - tw, y), total, font=f_mono, fill=(20, 20, 20))
                y += line_h
            draw.line((x, y, width - x, y), fill=(245, 245, 245), width=1)
            y += 6

        y = max(y, header_h + items_h) + 12
        total_txt = f"Total: {format_amount(sale.total)}"
        tw, _ = text_size(draw, total_txt, f_sub)
        draw.text((col_total_right - tw, y), total_txt, font=f_sub, fill=(0, 100, 0))
        y += line_h + 12
        draw.text((x, y), "Thank you for your purchase!", font=f_sub, fill=(80, 80, 80))

        img.save(png_path)
        logger.debug("Receipt for %s written to %s", sale.id, png_path)
        return png_path

    @staticmethod
    def try_generate(sale, names=None, receipts_dir=None):
        """Like ``generate`` but returns None instead of raising; the sale is already committed."""
        try:
            return ReceiptGenerator.generate(sale, names=names, receipts_dir=receipts_dir)
        except (OSError, ValueError) as e:
            logger.warning("Could not render receipt for %s: %s", sale.id, e)
            return None
