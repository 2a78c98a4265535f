from setuptools import setup, find_packages

setup(
    name="figma-frame-exporter",
    version="1.0.0",
    description="Export rendered frame images from Figma files, with rate-limit aware retries",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main"],
    install_requires=[
        "requests>=2.31.0",
        "boto3>=1.34.0",
        "python-dotenv>=1.0.0",
        "fastapi>=0.110.0",
        "uvicorn>=0.27.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "httpx>=0.27.0",
        ],
    },
    python_requires=">=3.8",
    entry_points={
        'console_scripts': [
            'figma-frames=main:main',
        ],
    },
)
