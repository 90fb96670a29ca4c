from setuptools import setup, find_packages

setup(
    name='todo-service',
    version='1.0.0',
    description='A to-do list REST API with a synchronizing async client',
    long_description='A to-do list service: a FastAPI REST API over a single SQL table of tasks, and an async client that mirrors the task list and keeps it consistent with the server.',
    packages=find_packages(include=['todo_service', 'todo_service.*']),
    python_requires='>=3.9',
    install_requires=[
        'fastapi',
        'uvicorn',
        'sqlalchemy>=2.0',
        'pydantic>=2.0',
        'pydantic-settings',
        'httpx',
        'psycopg2-binary',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
        ],
    },
    entry_points={
        'console_scripts': [
            'todo-service=todo_service.__main__:main',
        ],
    },
    classifiers=['License :: OSI Approved :: MIT License',],
    license="MIT",
)
