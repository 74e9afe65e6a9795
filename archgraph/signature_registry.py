"""Registry of package, infrastructure, service and AI-SDK signatures.

Pure data consumed by the scanners. Supporting a new ecosystem or provider
means adding an entry here, not new control flow.
"""

# Package signatures: package name -> component metadata.
# Packages not listed here fall back to the ecosystem's default type.
NPM_SIGNATURES = {
    # Frontend frameworks
    "next": {"type": "framework", "layer": "frontend", "purpose": "React framework with SSR", "critical": True},
    "react": {"type": "npm", "layer": "frontend", "purpose": "UI library", "critical": True},
    "vue": {"type": "framework", "layer": "frontend", "purpose": "Vue.js framework", "critical": True},
    "svelte": {"type": "framework", "layer": "frontend", "purpose": "Svelte framework", "critical": True},
    "@angular/core": {"type": "framework", "layer": "frontend", "purpose": "Angular framework", "critical": True},
    # Backend frameworks
    "express": {"type": "framework", "layer": "backend", "purpose": "Node.js web framework", "critical": True},
    "fastify": {"type": "framework", "layer": "backend", "purpose": "Fast Node.js framework", "critical": True},
    "hono": {"type": "framework", "layer": "backend", "purpose": "Lightweight web framework", "critical": True},
    "koa": {"type": "framework", "layer": "backend", "purpose": "Koa web framework", "critical": True},
    "nestjs": {"type": "framework", "layer": "backend", "purpose": "NestJS framework", "critical": True},
    "@nestjs/core": {"type": "framework", "layer": "backend", "purpose": "NestJS framework", "critical": True},
    # Database clients
    "prisma": {"type": "database", "layer": "database", "purpose": "Prisma ORM", "critical": True},
    "@prisma/client": {"type": "database", "layer": "database", "purpose": "Prisma client", "critical": True},
    "drizzle-orm": {"type": "database", "layer": "database", "purpose": "Drizzle ORM", "critical": True},
    "mongoose": {"type": "database", "layer": "database", "purpose": "MongoDB ODM", "critical": True},
    "pg": {"type": "database", "layer": "database", "purpose": "PostgreSQL client", "critical": True},
    "mysql2": {"type": "database", "layer": "database", "purpose": "MySQL client", "critical": True},
    "@supabase/supabase-js": {"type": "service", "layer": "database", "purpose": "Supabase client", "critical": True},
    "redis": {"type": "database", "layer": "database", "purpose": "Redis client", "critical": False},
    "ioredis": {"type": "database", "layer": "database", "purpose": "Redis client", "critical": False},
    # Queues
    "bullmq": {"type": "queue", "layer": "queue", "purpose": "BullMQ job queue", "critical": True},
    "bull": {"type": "queue", "layer": "queue", "purpose": "Bull job queue", "critical": True},
    "@aws-sdk/client-sqs": {"type": "queue", "layer": "queue", "purpose": "AWS SQS client", "critical": True},
    # External services
    "stripe": {"type": "service", "layer": "external", "purpose": "Stripe payments", "critical": True},
    "@anthropic-ai/sdk": {"type": "service", "layer": "external", "purpose": "Claude AI SDK", "critical": True},
    "openai": {"type": "service", "layer": "external", "purpose": "OpenAI SDK", "critical": True},
    "twilio": {"type": "service", "layer": "external", "purpose": "Twilio SMS/Voice", "critical": False},
    "@sendgrid/mail": {"type": "service", "layer": "external", "purpose": "SendGrid email", "critical": False},
    "nodemailer": {"type": "service", "layer": "external", "purpose": "Email sending", "critical": False},
    # Infrastructure
    "@aws-sdk/client-s3": {"type": "infra", "layer": "infra", "purpose": "AWS S3 storage", "critical": False},
    "@vercel/kv": {"type": "infra", "layer": "infra", "purpose": "Vercel KV storage", "critical": False},
    "@vercel/blob": {"type": "infra", "layer": "infra", "purpose": "Vercel Blob storage", "critical": False},
}

PYTHON_SIGNATURES = {
    # Web frameworks
    "django": {"type": "framework", "layer": "backend", "purpose": "Django web framework", "critical": True},
    "flask": {"type": "framework", "layer": "backend", "purpose": "Flask web framework", "critical": True},
    "fastapi": {"type": "framework", "layer": "backend", "purpose": "FastAPI framework", "critical": True},
    "starlette": {"type": "framework", "layer": "backend", "purpose": "Starlette ASGI framework", "critical": True},
    "tornado": {"type": "framework", "layer": "backend", "purpose": "Tornado async framework", "critical": True},
    # Databases
    "sqlalchemy": {"type": "database", "layer": "database", "purpose": "SQLAlchemy ORM", "critical": True},
    "psycopg2": {"type": "database", "layer": "database", "purpose": "PostgreSQL adapter", "critical": True},
    "psycopg2-binary": {"type": "database", "layer": "database", "purpose": "PostgreSQL adapter", "critical": True},
    "pymongo": {"type": "database", "layer": "database", "purpose": "MongoDB driver", "critical": True},
    "redis": {"type": "database", "layer": "database", "purpose": "Redis client", "critical": False},
    "prisma": {"type": "database", "layer": "database", "purpose": "Prisma Python client", "critical": True},
    "supabase": {"type": "service", "layer": "database", "purpose": "Supabase client", "critical": True},
    # Queues
    "celery": {"type": "queue", "layer": "queue", "purpose": "Celery task queue", "critical": True},
    "rq": {"type": "queue", "layer": "queue", "purpose": "Redis Queue", "critical": True},
    "dramatiq": {"type": "queue", "layer": "queue", "purpose": "Dramatiq task queue", "critical": True},
    # AI / ML
    "anthropic": {"type": "service", "layer": "external", "purpose": "Claude AI SDK", "critical": True},
    "openai": {"type": "service", "layer": "external", "purpose": "OpenAI SDK", "critical": True},
    "langchain": {"type": "service", "layer": "external", "purpose": "LangChain framework", "critical": True},
    "transformers": {"type": "pip", "layer": "backend", "purpose": "Hugging Face Transformers", "critical": False},
    # External services
    "stripe": {"type": "service", "layer": "external", "purpose": "Stripe payments", "critical": True},
    "twilio": {"type": "service", "layer": "external", "purpose": "Twilio SMS/Voice", "critical": False},
    "boto3": {"type": "infra", "layer": "infra", "purpose": "AWS SDK", "critical": False},
    "google-cloud-storage": {"type": "infra", "layer": "infra", "purpose": "Google Cloud Storage", "critical": False},
}

# Swift lookups are case-insensitive (see scanners.packages)
SWIFT_SIGNATURES = {
    # UI
    "SwiftUI": {"type": "framework", "layer": "frontend", "purpose": "SwiftUI declarative UI", "critical": True},
    "UIKit": {"type": "framework", "layer": "frontend", "purpose": "UIKit UI framework (iOS)", "critical": True},
    "AppKit": {"type": "framework", "layer": "frontend", "purpose": "AppKit UI framework (macOS)", "critical": True},
    "WidgetKit": {"type": "framework", "layer": "frontend", "purpose": "WidgetKit extensions", "critical": False},
    "ComposableArchitecture": {"type": "framework", "layer": "frontend", "purpose": "TCA state management", "critical": True},
    "Combine": {"type": "framework", "layer": "backend", "purpose": "Reactive programming", "critical": False},
    # Networking
    "Alamofire": {"type": "spm", "layer": "backend", "purpose": "HTTP networking library", "critical": False},
    "Moya": {"type": "spm", "layer": "backend", "purpose": "Network abstraction layer", "critical": False},
    # Persistence
    "CoreData": {"type": "database", "layer": "database", "purpose": "Apple Core Data ORM", "critical": True},
    "SwiftData": {"type": "database", "layer": "database", "purpose": "Apple SwiftData persistence", "critical": True},
    "RealmSwift": {"type": "database", "layer": "database", "purpose": "Realm mobile database", "critical": True},
    "GRDB": {"type": "database", "layer": "database", "purpose": "SQLite toolkit for Swift", "critical": True},
    "SQLite": {"type": "database", "layer": "database", "purpose": "SQLite.swift wrapper", "critical": True},
    "FMDB": {"type": "database", "layer": "database", "purpose": "Objective-C SQLite wrapper", "critical": True},
    # Cloud services
    "CloudKit": {"type": "service", "layer": "external", "purpose": "iCloud sync", "critical": True},
    "FirebaseFirestore": {"type": "service", "layer": "external", "purpose": "Firebase Firestore", "critical": True},
    "FirebaseAuth": {"type": "service", "layer": "external", "purpose": "Firebase authentication", "critical": True},
    "FirebaseAnalytics": {"type": "service", "layer": "external", "purpose": "Firebase analytics", "critical": False},
    "OpenAI": {"type": "service", "layer": "external", "purpose": "OpenAI Swift SDK", "critical": True},
    # Payments
    "StoreKit": {"type": "service", "layer": "external", "purpose": "Apple StoreKit in-app purchases", "critical": True},
    "RevenueCat": {"type": "service", "layer": "external", "purpose": "RevenueCat subscriptions", "critical": True},
    # Observability
    "Sentry": {"type": "service", "layer": "external", "purpose": "Error tracking", "critical": False},
    "Mixpanel": {"type": "service", "layer": "external", "purpose": "Product analytics", "critical": False},
    # Media
    "Kingfisher": {"type": "spm", "layer": "frontend", "purpose": "Image downloading/caching", "critical": False},
    "SDWebImageSwiftUI": {"type": "spm", "layer": "frontend", "purpose": "Async image loading", "critical": False},
    # Misc
    "SwiftyJSON": {"type": "spm", "layer": "backend", "purpose": "JSON parsing", "critical": False},
    "KeychainAccess": {"type": "spm", "layer": "backend", "purpose": "Keychain wrapper", "critical": False},
}

# Infrastructure markers. A file entry starting with "*" is a suffix match
# against the names in the project root (e.g. "*.xcodeproj").
INFRA_SIGNATURES = {
    "Railway": {
        "files": ["railway.toml", "railway.json", ".railway"],
        "env_vars": ["RAILWAY_ENVIRONMENT"],
        "purpose": "Railway deployment platform",
    },
    "Vercel": {
        "files": ["vercel.json", ".vercel"],
        "env_vars": ["VERCEL_ENV", "VERCEL"],
        "purpose": "Vercel deployment platform",
    },
    "Netlify": {
        "files": ["netlify.toml", ".netlify"],
        "env_vars": ["NETLIFY"],
        "purpose": "Netlify deployment platform",
    },
    "Heroku": {
        "files": ["Procfile", "app.json", "heroku.yml"],
        "env_vars": ["DYNO"],
        "purpose": "Heroku deployment platform",
    },
    "Fly.io": {"files": ["fly.toml"], "env_vars": ["FLY_APP_NAME"], "purpose": "Fly.io deployment platform"},
    "Render": {"files": ["render.yaml"], "env_vars": ["RENDER"], "purpose": "Render deployment platform"},
    "Docker": {
        "files": ["Dockerfile", "docker-compose.yml", "docker-compose.yaml", ".dockerignore"],
        "purpose": "Docker containerization",
    },
    "Kubernetes": {"files": ["k8s", "kubernetes", "helm"], "purpose": "Kubernetes orchestration"},
    "GitHub Actions": {"files": [".github/workflows"], "purpose": "GitHub Actions CI/CD"},
    "GitLab CI": {"files": [".gitlab-ci.yml"], "purpose": "GitLab CI/CD"},
    "CircleCI": {"files": [".circleci/config.yml"], "purpose": "CircleCI CI/CD"},
    "Serverless Framework": {"files": ["serverless.yml", "serverless.yaml"], "purpose": "Serverless Framework"},
    "AWS SAM": {"files": ["sam.yaml", "template.yaml"], "purpose": "AWS Serverless Application Model"},
    "AWS CDK": {"files": ["cdk.json"], "purpose": "AWS Cloud Development Kit"},
    "Terraform": {"files": ["main.tf", "terraform.tf", ".terraform"], "purpose": "Terraform infrastructure as code"},
    "Pulumi": {"files": ["Pulumi.yaml"], "purpose": "Pulumi infrastructure as code"},
    "Xcode": {"files": ["Package.swift", "*.xcodeproj", "*.xcworkspace"], "purpose": "Xcode/Swift project"},
    "Fastlane": {"files": ["Fastfile", "fastlane/Fastfile"], "purpose": "Fastlane build automation"},
    "Xcode Cloud": {"files": ["ci_scripts", ".xcode-version"], "purpose": "Xcode Cloud CI/CD"},
}

# Line-level service call patterns (regex source strings).
SERVICE_SIGNATURES = {
    "Claude (Anthropic)": {
        "patterns": [
            r"anthropic\.messages\.create",
            r"anthropic\.completions\.create",
            r"new Anthropic\(",
            r"from anthropic import",
        ],
        "type": "service",
        "layer": "external",
        "purpose": "Claude AI API",
    },
    "OpenAI": {
        "patterns": [
            r"openai\.chat\.completions\.create",
            r"openai\.completions\.create",
            r"new OpenAI\(",
            r"from openai import",
            r"OpenAIApi\(",
        ],
        "type": "service",
        "layer": "external",
        "purpose": "OpenAI API",
    },
    "Stripe": {
        "patterns": [
            r"stripe\.customers\.",
            r"stripe\.paymentIntents\.",
            r"stripe\.subscriptions\.",
            r"stripe\.invoices\.",
            r"stripe\.checkout\.",
            r"new Stripe\(",
        ],
        "type": "service",
        "layer": "external",
        "purpose": "Stripe payments",
    },
    "Supabase": {
        "patterns": [
            r"supabase\.from\(",
            r"createClient\(\s*process\.env\.SUPABASE",
            r"supabase\.auth\.",
            r"supabase\.storage\.",
        ],
        "type": "database",
        "layer": "database",
        "purpose": "Supabase backend",
    },
    "Firebase": {
        "patterns": [r"firebase\.firestore\(", r"firebase\.auth\(", r"initializeApp\(", r"getFirestore\("],
        "type": "database",
        "layer": "database",
        "purpose": "Firebase backend",
    },
    "BullMQ": {
        "patterns": [r"new Queue\(", r"new Worker\(", r"Queue\.add\(", r"from 'bullmq'"],
        "type": "queue",
        "layer": "queue",
        "purpose": "BullMQ job queue",
    },
    "Celery": {
        "patterns": [r"@celery\.task", r"celery\.send_task", r"\.delay\(", r"apply_async\("],
        "type": "queue",
        "layer": "queue",
        "purpose": "Celery task queue",
    },
    "Twilio": {
        "patterns": [r"twilio\.messages\.create", r"new Twilio\(", r"twilio\.calls\."],
        "type": "service",
        "layer": "external",
        "purpose": "Twilio SMS/Voice",
    },
    "SendGrid": {
        "patterns": [r"sgMail\.send", r"@sendgrid/mail", r"sendgrid\.send"],
        "type": "service",
        "layer": "external",
        "purpose": "SendGrid email",
    },
    "AWS S3": {
        "patterns": [r"s3\.putObject", r"s3\.getObject", r"S3Client\(", r"PutObjectCommand", r"s3\.put_object", r"s3\.get_object"],
        "type": "service",
        "layer": "external",
        "purpose": "AWS S3 storage",
    },
}

# AI provider SDKs for the anchor-based call tracer.
#   package_names: JS/TS package specifiers and Python module names
#   class_names:   constructors that produce a client binding
#   call_patterns: regex source, method label, call kind, and whether the
#                  receiver must be a known client binding
LLM_SDK_REGISTRY = {
    "openai": {
        "package_names": ["openai"],
        "class_names": ["OpenAI", "AsyncOpenAI", "OpenAIApi", "AzureOpenAI"],
        "call_patterns": [
            {"pattern": r"\.chat\.completions\.create\s*\(", "method": "chat.completions.create", "call_type": "chat", "requires_client": True},
            {"pattern": r"\.completions\.create\s*\(", "method": "completions.create", "call_type": "completion", "requires_client": True},
            {"pattern": r"\.responses\.create\s*\(", "method": "responses.create", "call_type": "chat", "requires_client": True},
            {"pattern": r"\.embeddings\.create\s*\(", "method": "embeddings.create", "call_type": "embedding", "requires_client": True},
            {"pattern": r"\.images\.generate\s*\(", "method": "images.generate", "call_type": "image", "requires_client": True},
            {"pattern": r"\.audio\.transcriptions\s*\.create\s*\(", "method": "audio.transcriptions.create", "call_type": "audio", "requires_client": True},
        ],
    },
    "anthropic": {
        "package_names": ["@anthropic-ai/sdk", "anthropic"],
        "class_names": ["Anthropic", "AsyncAnthropic"],
        "call_patterns": [
            {"pattern": r"\.messages\.create\s*\(", "method": "messages.create", "call_type": "chat", "requires_client": True},
            {"pattern": r"\.messages\.stream\s*\(", "method": "messages.stream", "call_type": "chat", "requires_client": True},
            {"pattern": r"\.completions\.create\s*\(", "method": "completions.create", "call_type": "completion", "requires_client": True},
            {"pattern": r"\.beta\.", "method": "beta", "call_type": "chat", "requires_client": True},
        ],
    },
    "groq": {
        "package_names": ["groq-sdk", "groq"],
        "class_names": ["Groq", "AsyncGroq"],
        "call_patterns": [
            {"pattern": r"\.chat\.completions\.create\s*\(", "method": "chat.completions.create", "call_type": "chat", "requires_client": True},
        ],
    },
    "cohere": {
        "package_names": ["cohere-ai", "cohere"],
        "class_names": ["CohereClient", "CohereClientV2", "Cohere"],
        "call_patterns": [
            {"pattern": r"\.generate\s*\(", "method": "generate", "call_type": "completion", "requires_client": True},
            {"pattern": r"\.chat\s*\(", "method": "chat", "call_type": "chat", "requires_client": True},
            {"pattern": r"\.embed\s*\(", "method": "embed", "call_type": "embedding", "requires_client": True},
        ],
    },
    "mistral": {
        "package_names": ["@mistralai/mistralai", "mistralai"],
        "class_names": ["MistralClient", "Mistral"],
        "call_patterns": [
            {"pattern": r"\.chat\s*\(", "method": "chat", "call_type": "chat", "requires_client": True},
            {"pattern": r"\.chatStream\s*\(", "method": "chatStream", "call_type": "chat", "requires_client": True},
            {"pattern": r"\.chat\.complete\s*\(", "method": "chat.complete", "call_type": "chat", "requires_client": True},
        ],
    },
    "google-genai": {
        "package_names": ["@google/generative-ai", "@google/genai", "google.generativeai", "google.genai"],
        "class_names": ["GoogleGenerativeAI", "GoogleGenAI", "GenerativeModel"],
        "call_patterns": [
            {"pattern": r"\.generateContent\s*\(", "method": "generateContent", "call_type": "chat", "requires_client": True},
            {"pattern": r"\.generate_content\s*\(", "method": "generate_content", "call_type": "chat", "requires_client": True},
        ],
    },
    "vercel-ai-sdk": {
        "package_names": ["ai", "@ai-sdk/openai", "@ai-sdk/anthropic", "@ai-sdk/google"],
        "class_names": [],
        "call_patterns": [
            {"pattern": r"\bgenerateText\s*\(", "method": "generateText", "call_type": "completion", "requires_client": False},
            {"pattern": r"\bstreamText\s*\(", "method": "streamText", "call_type": "chat", "requires_client": False},
            {"pattern": r"\bgenerateObject\s*\(", "method": "generateObject", "call_type": "function-call", "requires_client": False},
            {"pattern": r"\bstreamObject\s*\(", "method": "streamObject", "call_type": "function-call", "requires_client": False},
            {"pattern": r"\bembed\s*\(", "method": "embed", "call_type": "embedding", "requires_client": False},
            {"pattern": r"\bembedMany\s*\(", "method": "embedMany", "call_type": "embedding", "requires_client": False},
        ],
    },
    "langchain": {
        "package_names": [
            "@langchain/openai",
            "@langchain/anthropic",
            "@langchain/groq",
            "@langchain/core",
            "@langchain/community",
            "langchain",
            "langchain_openai",
            "langchain_anthropic",
            "langchain_core",
            "langchain_community",
        ],
        "class_names": ["ChatOpenAI", "ChatAnthropic", "ChatGroq", "ChatGoogleGenerativeAI"],
        "call_patterns": [
            {"pattern": r"\.invoke\s*\(", "method": "invoke", "call_type": "chat", "requires_client": True},
            {"pattern": r"\.ainvoke\s*\(", "method": "ainvoke", "call_type": "chat", "requires_client": True},
            {"pattern": r"\.call\s*\(", "method": "call", "call_type": "chat", "requires_client": True},
            {"pattern": r"\.stream\s*\(", "method": "stream", "call_type": "chat", "requires_client": True},
            {"pattern": r"\.batch\s*\(", "method": "batch", "call_type": "chat", "requires_client": True},
        ],
    },
}

LLM_CALL_TYPES = ("chat", "completion", "embedding", "image", "audio", "function-call")

# Prompt definition markers, tested against a small window around each line.
PROMPT_PATTERNS = [
    r"messages\s*[:=]\s*\[\s*\{[^}]*['\"]?role['\"]?\s*:\s*['\"](?:system|user|assistant)['\"]",
    r"\bprompt\s*[:=]\s*f?[`'\"]",
    r"system_prompt\s*[:=]\s*f?[`'\"]",
    r"SYSTEM_PROMPT\s*[:=]\s*f?[`'\"]",
    r"systemPrompt\s*[:=]\s*[`'\"]",
    r"content\s*:\s*[`'\"][^`'\"]{50,}",
]

# Route conventions: project-relative file path -> URL path in group "route".
ROUTE_FILE_PATTERNS = {
    "next-app": r"^(?:src/)?app/(?P<route>(?:.+/)?)route\.(?:ts|tsx|js|jsx|mjs)$",
    "next-pages": r"^(?:src/)?pages/(?P<route>api/.+)\.(?:ts|tsx|js|jsx|mjs)$",
}

# Frontend page conventions, same shape as ROUTE_FILE_PATTERNS.
PAGE_FILE_PATTERNS = {
    "next-app": r"^(?:src/)?app/(?P<route>(?:.+/)?)page\.(?:ts|tsx|js|jsx|mjs)$",
    "next-pages": r"^(?:src/)?pages/(?P<route>(?!api/)(?!_)[^.]+)\.(?:ts|tsx|js|jsx|mjs)$",
}

# Route definitions inside handler files. First matching framework wins a line.
ROUTE_DEFINITION_PATTERNS = {
    "fastapi": r"^\s*@\w+\.(?P<method>get|post|put|patch|delete|head|options)\(\s*['\"](?P<route>/[^'\"]*)['\"]",
    "flask": r"^\s*@\w+\.route\(\s*['\"](?P<route>/[^'\"]*)['\"]",
    "express": (
        r"\b(?:app|router|server|routes)\.(?P<method>get|post|put|patch|delete|all)\(\s*"
        r"['\"`](?P<route>/[^'\"`]*)['\"`]"
    ),
}

# HTTP client calls made by frontend code. Group "arg" is the raw first argument.
HTTP_CLIENT_PATTERNS = {
    "fetch": r"(?<![\w$.])(?:(?:window|globalThis)\.)?fetch\(\s*(?P<arg>[^,)\n]*)",
    "axios": r"\baxios\.(?P<method>get|post|put|patch|delete|head)\(\s*(?P<arg>[^,)\n]*)",
}

# Hosts treated as the project's own API when a client call uses an absolute URL.
LOCAL_API_HOSTS = ("localhost", "127.0.0.1", "0.0.0.0")

# ORM access patterns: group "table" names the table/model, group "operation" the call.
ORM_SIGNATURES = {
    "prisma": {
        "pattern": r"\b(?:prisma|db|tx|ctx\.prisma|ctx\.db)\.(?P<table>[a-zA-Z_]\w*)\.(?P<operation>\w+)\s*\(",
        "operations": [
            "findMany", "findUnique", "findUniqueOrThrow", "findFirst", "findFirstOrThrow",
            "create", "createMany", "update", "updateMany", "delete", "deleteMany",
            "upsert", "count", "aggregate", "groupBy",
        ],
        "confidence": 0.9,
    },
    "django": {
        "pattern": r"\b(?P<table>[A-Z]\w*)\.objects\.(?P<operation>\w+)\s*\(",
        "operations": [
            "all", "filter", "exclude", "get", "create", "update", "delete", "bulk_create",
            "get_or_create", "update_or_create", "count", "first", "last", "aggregate", "annotate", "values",
        ],
        "confidence": 0.85,
    },
    "sqlalchemy": {
        "pattern": r"\bsession\.(?P<operation>query)\(\s*(?P<table>[A-Z]\w*)\b",
        "operations": ["query"],
        "confidence": 0.8,
    },
}
