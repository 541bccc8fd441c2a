"""Interactive building blocks: collectors, reaction menus, countdowns and the console."""
