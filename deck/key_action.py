class KeyAction:
    """Handle for one physical key; the controller renders state through it."""
    def __init__(self, key, renderer):
        self.key = key
        self.renderer = renderer

    def set_image(self, image):
        self.renderer.update_button(self.key, image=image)

    def set_title(self, title):
        self.renderer.update_button(self.key, title=title)

    def __repr__(self):
        return f"KeyAction({self.key})"
