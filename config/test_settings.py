import os

os.environ.setdefault("DJANGO_DEBUG", "True")

from config.settings import *  # noqa: E402,F401,F403

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
