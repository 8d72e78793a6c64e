"""Command line interface for inspecting configuration loading"""
from . import settings_conf, DEFAULTS
from pathlib import Path

SECRET_KEYS = {'access_token_secret', 'refresh_token_secret'}

def main():
    """Display loaded configuration"""
    print("\nSettings Configuration:")
    print("-" * 50)
    for key, value in settings_conf.items():
        if key in SECRET_KEYS:
            value = '********'
        print(f"{key}: {value}")

    # Save example configuration file
    lines = ["[DEFAULT]"]
    for key, value in DEFAULTS.items():
        lines.append(f"{key} = {value}")

    with open(Path("settings.conf.example"), "w") as f:
        f.write("\n".join(lines) + "\n")
    print("\nWrote settings.conf.example")

if __name__ == "__main__":
    main()
