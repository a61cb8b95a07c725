import os
import tempfile


os.environ.setdefault("BUYER_INTAKE_SETTINGS", os.path.join(tempfile.mkdtemp(), "settings.json"))
