"""Realtime Database paths and cache keys shared by the admin screens.

The database has no schema; these constants are the single source of truth
for where each collection lives.
"""

USERS_PATH = "users"
EMPLOYEES_INDEX_PATH = "employees_index"
CLIENTS_PATH = "clients"
SERVICE_REGISTRATIONS_CHILD = "serviceRegistrations"
SERVICE_REGISTRATIONS_INDEX_PATH = "service_registrations_index"
MANAGER_ASSIGNMENTS_PATH = "manager_assignments"
CLIENT_JOB_APPLICATIONS_PATH = "clients-jobapplication"
DEPARTMENTS_PATH = "departments"
ASSETS_PATH = "assets"
PROJECTS_PATH = "projects"
PROJECTS_LAST_UPDATED_PATH = "metadata/projects_last_updated"
CAREER_SUBMISSIONS_PATH = "submissions/career_submissions"
CONTACT_MESSAGES_PATH = "submissions/contactMessages"

# Blob storage prefixes
PROJECT_IMAGES_PREFIX = "project_images"
RESUMES_PREFIX = "resumes"

# Cache keys
EMPLOYEES_INDEX_CACHE_KEY = "cache_employees_index"
ASSETS_CACHE_KEY = "cache_assets_full"
PROJECTS_CACHE_KEY = "admin_projects_cache"
REGISTRATIONS_CACHE_KEY = "client_management_cache"

# Lowercase role tokens that mark an internal (non-client) account.
INTERNAL_ROLES = frozenset(
    [
        "admin",
        "manager",
        "employee",
        "team lead",
        "hr",
        "support",
        "sales",
        "development",
    ]
)
CLIENT_ROLE = "client"

# Upper bound of the Unicode private-use area, appended to a prefix to build
# a "starts with" range on an ordered child.
PREFIX_RANGE_END = "\uf8ff"
