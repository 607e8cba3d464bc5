from setuptools import setup, find_packages

setup(
    name="zfs-autosnap",
    version="0.3.0",
    description="Periodic ZFS snapshots with multi-tier retention",
    author="zfs-autosnap contributors",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "watchdog>=3.0.0",
        "paramiko>=3.0.0",
        "flask>=3.0.0",
        "flask-httpauth>=4.8.0",
    ],
    extras_require={
        "test": ["pytest>=7.0.0"],
    },
    entry_points={
        'console_scripts': [
            'autosnap=autosnap.daemon.manage:main',
            'autosnap-status=autosnap.daemon.status:main',
        ],
    },
    python_requires='>=3.8',
)
