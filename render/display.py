import os
import threading
from io import BytesIO

import requests
from PIL import Image, ImageDraw, ImageFont
from StreamDeck.ImageHelpers import PILHelper


def _is_remote(image):
    return image.startswith("http://") or image.startswith("https://")


class Renderer:
    """Composes key images (icon plus title) and pushes them to the deck."""
    def __init__(self, deck, assets_dir="assets", button_size=(72, 72)):
        self.deck = deck
        self.assets_dir = assets_dir
        self.button_size = button_size
        self._deck_lock = threading.Lock()
        # key -> {"image": path, "title": text}
        self._key_state = {}
        self._last_key_images = {}
        self._icon_cache = {}
        self._fetch_lock = threading.Lock()
        # remote icons being downloaded
        self._fetching = set()
        try:
            self.font = ImageFont.truetype("DejaVuSans-Bold.ttf", 14)
        except Exception:
            self.font = ImageFont.load_default()

    def resolve_image(self, image):
        """Return a local path or URL for an icon reference."""
        if _is_remote(image) or os.path.isabs(image):
            return image
        return os.path.join(self.assets_dir, image)

    def prefetch(self, images):
        """
        Download remote icons in a background thread. Keys already showing
        one of them are redrawn once it arrives.
        """
        with self._fetch_lock:
            remote = [i for i in images if i and _is_remote(i)
                      and i not in self._icon_cache and i not in self._fetching]
            self._fetching.update(remote)
        if not remote:
            return None
        t = threading.Thread(target=self._prefetch, args=(remote,), daemon=True)
        t.start()
        return t

    def _prefetch(self, images):
        for image in images:
            try:
                response = requests.get(image, timeout=5)
                response.raise_for_status()
                icon = Image.open(BytesIO(response.content)).convert("RGB")
                self._icon_cache[image] = icon.resize(self.button_size)
            except Exception as e:
                print(f"[WARN] Failed to fetch image '{image}': {e}")
                continue
            finally:
                with self._fetch_lock:
                    self._fetching.discard(image)
            for key, state in list(self._key_state.items()):
                if state["image"] == image:
                    self.update_button(key)

    def _load_icon(self, image):
        source = self.resolve_image(image)
        cached = self._icon_cache.get(source)
        if cached is not None:
            return cached
        if _is_remote(source):
            # never block a key update on the network
            self.prefetch([source])
            return None
        icon = Image.open(source).convert("RGB").resize(self.button_size)
        self._icon_cache[source] = icon
        return icon

    def render_button(self, title=None, image=None, fg="white", bg="black"):
        """Creates a PIL image with the icon and the title drawn over its lower edge."""
        base = Image.new("RGB", self.button_size, color=bg)

        if image:
            try:
                icon = self._load_icon(image)
                if icon is not None:
                    base.paste(icon)
            except Exception as e:
                print(f"[WARN] Failed to load image '{image}': {e}")

        if title:
            draw = ImageDraw.Draw(base)
            try:
                bbox = draw.multiline_textbbox((0, 0), title, font=self.font, align="center")
                w, h = bbox[2] - bbox[0], bbox[3] - bbox[1]
                x = (self.button_size[0] - w) // 2
                y = self.button_size[1] - h - 6 - bbox[1]
                draw.multiline_text((x, y), title, font=self.font, fill=fg, align="center",
                                    stroke_width=2, stroke_fill="black")
            except Exception as e:
                print(f"[WARN] Failed to render text: {e}")

        return base

    def update_button(self, key: int, title=None, image=None):
        """
        Change the icon and/or title of a key and push the result.
        None leaves that part unchanged; an empty title clears it.
        """
        state = self._key_state.setdefault(key, {"image": None, "title": ""})
        if image is not None:
            state["image"] = image
        if title is not None:
            state["title"] = title

        try:
            img = self.render_button(state["title"], state["image"])
            if self.deck is None:
                return
            native = PILHelper.to_native_key_format(self.deck, img.resize(self._key_size()))

            # Avoid re-sending identical key images (reduces flicker on unchanged buttons)
            prev = self._last_key_images.get(key)
            if prev != native:
                self._last_key_images[key] = native
                with self._deck_lock:
                    self.deck.set_key_image(key, native)
        except Exception as e:
            print(f"[WARN] Failed to render button {key}: {e}")

    def clear_button(self, key: int):
        self._key_state.pop(key, None)
        self._last_key_images.pop(key, None)
        if self.deck is None:
            return
        try:
            with self._deck_lock:
                self.deck.set_key_image(key, None)
        except Exception as e:
            print(f"[WARN] Failed to clear button {key}: {e}")

    def _key_size(self):
        try:
            return self.deck.key_image_format()["size"]
        except Exception:
            return self.button_size
