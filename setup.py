from setuptools import setup

setup(
    name="steam-archive",
    author="BaumherA, don-de-marco, et al",
    version="1.0.0",
    python_requires=">=3.10",
    package_dir={'': 'src'},
    packages=["steam_archive", "steam_archive.storage", "steam_archive.session", "steam_archive.scheduler"],
    install_requires=[
        "aiohttp>=3.8",
        "yarl>=1.8",
        "cryptography>=41.0",
        "rsa>=4.9",
        "vdf>=3.4",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
    ],
    extras_require={
        "test": ["pytest>=7.4", "pytest-asyncio>=0.23"],
    },
    entry_points={
        "console_scripts": ["steam-archive=steam_archive.__main__:main"],
    },
)
