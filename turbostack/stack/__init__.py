"""Stack introspection: virtual hosts, web-root folders, runtime details."""

from .runtime import installed_distributions, loaded_modules, runtime_info, server_software
from .sites import VirtualHost, discover_virtual_hosts, list_app_folders
