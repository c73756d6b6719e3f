"""Bundled default content, used to seed the section store and as the public fallback."""

DEFAULT_CONTENT = {
    "hero": {
        "greeting": "Hi, I'm",
        "name": "Mark Remetio",
        "title": "Web Designer & Developer",
        "description": (
            "Versatile and detail-oriented Web Developer with 5 years of hands-on "
            "experience specializing in both Front-End and Back-End development."
        ),
        "profileImage": "/images/profile.svg",
        "socialLinks": {
            "linkedin": "https://www.linkedin.com/",
            "github": "https://github.com/",
            "email": "mailto:hello@example.com",
        },
    },
    "about": {
        "title": "About Me",
        "subtitle": "Get to know me",
        "paragraphs": [
            "I build responsive, accessible websites and the services behind them.",
            "My work spans UI design, front-end engineering and pragmatic back-end APIs.",
        ],
        "stats": [
            {"label": "Years Experience", "value": "5+"},
            {"label": "Projects Completed", "value": "40+"},
            {"label": "Happy Clients", "value": "25+"},
        ],
        "image": "/images/about.svg",
    },
    "skills": {
        "title": "My Skills",
        "description": "Technologies and tools I work with every day",
        "categories": [
            {
                "title": "Front-End",
                "skills": [
                    {"name": "HTML & CSS", "level": 95},
                    {"name": "JavaScript / TypeScript", "level": 90},
                    {"name": "React", "level": 85},
                ],
            },
            {
                "title": "Back-End",
                "skills": [
                    {"name": "Node.js", "level": 80},
                    {"name": "PHP", "level": 80},
                    {"name": "SQL", "level": 75},
                ],
            },
            {
                "title": "Design",
                "skills": [
                    {"name": "Figma", "level": 85},
                    {"name": "Responsive Design", "level": 90},
                ],
            },
        ],
        "techIcons": ["html5", "css3", "js", "react", "node", "php", "figma", "git"],
    },
    "experience": {
        "title": "Work Experience",
        "description": "Where I have worked and what I have delivered",
        "experiences": [
            {
                "role": "Senior Web Developer",
                "company": "Freelance",
                "period": "2022 - Present",
                "responsibilities": [
                    "Design and build marketing sites and dashboards for small businesses",
                    "Maintain hosting, deployments and content workflows",
                ],
            },
            {
                "role": "Web Developer",
                "company": "Digital Agency",
                "period": "2019 - 2022",
                "responsibilities": [
                    "Developed e-commerce storefronts and custom CMS themes",
                    "Collaborated with designers on component libraries",
                ],
            },
        ],
    },
    "projects": {
        "title": "My Projects",
        "subtitle": "Recent work",
        "description": "A selection of projects I have designed and built",
        "projects": [
            {
                "title": "E-commerce Platform",
                "description": "Online store with product catalogue, cart and payment integration.",
                "imagePlaceholder": "E-commerce Website",
                "technologies": ["React", "Node.js", "PostgreSQL"],
                "githubLink": "https://github.com/",
                "liveLink": "",
            },
            {
                "title": "Analytics Dashboard",
                "description": "Real-time reporting dashboard with charts and exports.",
                "imagePlaceholder": "Analytics Dashboard",
                "technologies": ["TypeScript", "Chart.js", "Express"],
                "githubLink": "https://github.com/",
                "liveLink": "",
            },
            {
                "title": "Educational Platform",
                "description": "Course delivery site with lesson tracking and quizzes.",
                "imagePlaceholder": "Educational Platform",
                "technologies": ["PHP", "MySQL", "Bootstrap"],
                "githubLink": "",
                "liveLink": "",
            },
        ],
    },
    "contact": {
        "title": "Get In Touch",
        "description": "Have a project in mind or just want to say hello? Send me a message.",
        "email": "hello@example.com",
        "phone": "",
        "location": "Philippines",
        "availability": "Open to freelance and full-time opportunities",
    },
    "gallery": {
        "title": "Project Gallery",
        "description": "A visual showcase of UI/UX designs and development work",
        "items": [
            {"alt": "Web Dashboard", "image": ""},
            {"alt": "E-commerce Website", "image": ""},
            {"alt": "Mobile App Design", "image": ""},
            {"alt": "Educational Platform", "image": ""},
            {"alt": "Analytics Dashboard", "image": ""},
            {"alt": "Admin Panel", "image": ""},
        ],
    },
}
