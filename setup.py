# setup.py - DoodleHub 安装脚本

from setuptools import setup, find_packages

setup(
    name="doodlehub",
    version="0.1.0",
    description="Peer-hosted drawing and guessing game engine",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={"doodlehub.game": ["data/*.json"]},
    include_package_data=True,
    python_requires=">=3.8",
    install_requires=[
        # pygame.image.tobytes / frombytes 需要 2.1.3+
        "pygame>=2.1.3",
    ],
    extras_require={
        "dev": [
            "black==23.9.1",
            "flake8==6.1.0",
            "isort==5.12.0",
            "pytest==7.4.0",
            "pytest-cov==4.1.0",
            "pre-commit==3.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "doodlehub-server=doodlehub.server.main:main",
            "doodlehub-client=doodlehub.client.main:main",
        ],
    },
)
