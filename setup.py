"""Setup script for File Tracking."""

from setuptools import setup, find_packages

setup(
    name="file-tracking",
    version="1.0.0",
    description="Background service that mirrors new files and reports on them daily",
    long_description=open("README.md", encoding="utf-8").read(),
    long_description_content_type="text/markdown",
    author="File Tracking contributors",
    python_requires=">=3.10",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "watchdog>=3.0.0",
        "Pillow>=10.1.0",
        "pywin32>=306; sys_platform == 'win32'",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "file-tracking=filetracking.service:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: No Input/Output (Daemon)",
        "Environment :: MacOS X",
        "Environment :: Win32 (MS Windows)",
        "Operating System :: MacOS :: MacOS X",
        "Operating System :: Microsoft :: Windows",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Topic :: System :: Archiving :: Mirroring",
    ],
)
