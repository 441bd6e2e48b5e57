import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Team competition engine configuration settings"""
    
    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///tc_stats.db')
    
    # Logging settings
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    LOG_DIR = os.getenv('LOG_DIR', 'logs')
    
    # Permitted users per team in each category
    USERS_IN_AMD_GPU = int(os.getenv('USERS_IN_AMD_GPU', 1))
    USERS_IN_NVIDIA_GPU = int(os.getenv('USERS_IN_NVIDIA_GPU', 1))
    USERS_IN_WILDCARD = int(os.getenv('USERS_IN_WILDCARD', 1))
    
    @classmethod
    def get_category_limits(cls):
        """Get permitted users per team, keyed by category name"""
        return {
            'AMD_GPU': cls.USERS_IN_AMD_GPU,
            'NVIDIA_GPU': cls.USERS_IN_NVIDIA_GPU,
            'WILDCARD': cls.USERS_IN_WILDCARD,
        }
    
    @classmethod
    def validate(cls):
        """Validate that required configuration is present"""
        if not cls.DATABASE_URL:
            raise ValueError("DATABASE_URL is required")
        for name, limit in cls.get_category_limits().items():
            if limit < 0:
                raise ValueError(f"USERS_IN_{name} must not be negative")
