from studymark.models.user_profile import UserProfile  # noqa: F401
from studymark.models.bookmark import Bookmark  # noqa: F401
