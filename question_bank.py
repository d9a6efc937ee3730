"""
Static question bank: curated questions per topic and the seeding bookkeeping
that keeps every topic topped up to QUESTIONS_PER_TOPIC.
"""
import logging

from sqlalchemy import func, select

from config import GENERATIVE_MODE
from models import Question, QuestionUsage, db

logger = logging.getLogger(__name__)

QUESTION_TOPICS = ["Maths", "Language", "Networking", "Logic", "Cloud", "Security"]
QUESTIONS_PER_TOPIC = 40


def _q(question, options, correct):
    return {"question": question, "options": options, "correct_option": correct}


MATH_QUESTIONS = [
    _q("What is the value of 25^2 - 15^2?", ["400", "500", "600", "800"], "A"),
    _q("If the ratio of two numbers is 3:5 and their sum is 64, find the larger number.", ["24", "32", "40", "48"], "C"),
    _q("Find the HCF of 24 and 36.", ["6", "12", "18", "24"], "B"),
    _q("A train travels 60 km in 1.5 hours. What is its speed?", ["30 km/h", "40 km/h", "45 km/h", "50 km/h"], "B"),
    _q("What is 20% of 250?", ["40", "45", "50", "60"], "C"),
    _q("Simplify: 3/4 + 5/8", ["1", "1 1/8", "1 3/8", "1 1/2"], "C"),
    _q("If x = 5, find the value of 2x^2 + 3x.", ["55", "60", "65", "70"], "C"),
    _q("The average of 10 numbers is 15. What is their sum?", ["150", "140", "160", "145"], "A"),
    _q("Find the simple interest on Rs 2000 at 5% for 2 years.", ["Rs 150", "Rs 200", "Rs 250", "Rs 300"], "B"),
    _q("What is the square root of 144?", ["10", "11", "12", "13"], "C"),
    _q("If 12 men can complete a work in 10 days, how many days will 6 men take?", ["15", "18", "20", "25"], "C"),
    _q("What is the LCM of 8 and 12?", ["12", "16", "24", "48"], "C"),
    _q("Convert 0.75 into a fraction.", ["1/2", "2/3", "3/4", "4/5"], "C"),
    _q("If CP = Rs 500 and SP = Rs 600, find profit percentage.", ["15%", "20%", "25%", "30%"], "B"),
    _q("How many minutes are there in 2.5 hours?", ["120", "140", "150", "180"], "C"),
    _q("What is the cube root of 64?", ["2", "3", "4", "6"], "C"),
]

LOGIC_QUESTIONS = [
    _q("Find the missing number: 4, 9, 16, 25, ?", ["30", "35", "36", "49"], "C"),
    _q("Which word does NOT belong to the group?", ["Apple", "Banana", "Carrot", "Mango"], "C"),
    _q("Find the missing number: 5, 10, 20, 40, ?", ["60", "70", "80", "100"], "C"),
    _q("Find the odd one out: Square, Rectangle, Triangle, Cube", ["Square", "Rectangle", "Triangle", "Cube"], "D"),
    _q("If CLOCK is written as KCOLC, how is WATCH written?", ["HCTAW", "HCTWA", "HCAWT", "HTCAW"], "A"),
    _q("Find the next term: 2, 3, 5, 7, 11, ?", ["12", "13", "14", "15"], "B"),
    _q("Find the missing number: 1, 8, 27, ?, 125", ["36", "54", "64", "81"], "C"),
    _q("Which comes next? AZ, BY, CX, ?", ["DW", "DX", "CY", "EV"], "A"),
    _q("Find the next term: 1, 1, 2, 3, 5, ?", ["6", "7", "8", "9"], "C"),
    _q("Find the missing number: 3, 9, 27, ?, 243", ["54", "72", "81", "108"], "C"),
    _q("Which number is NOT divisible by 3?", ["18", "21", "25", "27"], "C"),
    _q("Find the next letter: A, C, E, G, ?", ["H", "I", "J", "K"], "B"),
]

CLOUD_QUESTIONS = [
    _q("What is Cloud Computing?", ["Storing data on local servers", "Using remote servers over the internet", "Using only private networks", "Using hardware without software"], "B"),
    _q("Which of the following is a cloud service model?", ["LAN", "WAN", "IaaS", "VPN"], "C"),
    _q("What does IaaS stand for?", ["Internet as a Service", "Infrastructure as a Service", "Information as a Service", "Instance as a Service"], "B"),
    _q("Which service model provides ready-to-use applications?", ["IaaS", "PaaS", "SaaS", "DaaS"], "C"),
    _q("Which is an example of SaaS?", ["AWS EC2", "Google Docs", "Docker", "Kubernetes"], "B"),
    _q("Which cloud is a combination of public and private clouds?", ["Community cloud", "Public cloud", "Private cloud", "Hybrid cloud"], "D"),
    _q("Which service is used for cloud storage?", ["EC2", "S3", "Lambda", "VPC"], "B"),
    _q("Which cloud feature allows automatic resource scaling?", ["Virtualization", "Elasticity", "Redundancy", "Encryption"], "B"),
    _q("Which component enables virtualization?", ["Router", "Switch", "Hypervisor", "Firewall"], "C"),
    _q("Which service is serverless?", ["EC2", "RDS", "Lambda", "VPC"], "C"),
    _q("Which tool distributes traffic across servers?", ["Firewall", "Load balancer", "Router", "Gateway"], "B"),
    _q("What is a VPC?", ["Virtual Private Cloud", "Virtual Public Connection", "Verified Private Channel", "Virtual Processing Core"], "A"),
]

NETWORKING_QUESTIONS = [
    _q("Which device operates at the Physical Layer of the OSI model?", ["Router", "Switch", "Hub", "Bridge"], "C"),
    _q("How many layers are there in the OSI model?", ["5", "6", "7", "8"], "C"),
    _q("Which protocol is used to transfer web pages?", ["FTP", "HTTP", "SMTP", "SNMP"], "B"),
    _q("Which device is used to connect two different networks?", ["Switch", "Hub", "Router", "Repeater"], "C"),
    _q("What is the default port number of HTTP?", ["21", "23", "80", "443"], "C"),
    _q("Which protocol is used to send emails?", ["POP3", "IMAP", "SMTP", "FTP"], "C"),
    _q("What does IP stand for?", ["Internet Program", "Internet Protocol", "Internal Process", "Interface Protocol"], "B"),
    _q("Which device works at the Data Link Layer?", ["Router", "Switch", "Hub", "Modem"], "B"),
    _q("Which protocol converts domain names to IP addresses?", ["DHCP", "FTP", "DNS", "SNMP"], "C"),
    _q("Which topology has a central device?", ["Ring", "Bus", "Star", "Mesh"], "C"),
    _q("Which protocol is connectionless?", ["TCP", "FTP", "UDP", "HTTP"], "C"),
    _q("Which network topology connects every node to every other node?", ["Star", "Bus", "Ring", "Mesh"], "D"),
]

CURATED_QUESTIONS = {
    "Maths": MATH_QUESTIONS,
    "Logic": LOGIC_QUESTIONS,
    "Cloud": CLOUD_QUESTIONS,
    "Networking": NETWORKING_QUESTIONS,
}


def placeholder_question(topic, index):
    return _q(
        f"[{topic}] Question {index}: What is the correct answer?",
        ["Option A", "Option B", "Option C", "Option D"],
        "A",
    )


def topic_question_set(topic, size=QUESTIONS_PER_TOPIC):
    """Curated questions for `topic` padded with numbered placeholders up to `size`."""
    items = list(CURATED_QUESTIONS.get(topic, []))[:size]
    index = len(items) + 1
    while len(items) < size:
        items.append(placeholder_question(topic, index))
        index += 1
    return items


def seed_topic(topic, size=QUESTIONS_PER_TOPIC):
    """Insert the missing part of a topic's question set. Returns how many were added."""
    existing = set(
        db.session.scalars(
            select(Question.question).where(Question.topic == topic, Question.source == "seed")
        ).all()
    )
    if len(existing) >= size:
        return 0

    added = 0
    for item in topic_question_set(topic, size):
        if len(existing) + added >= size:
            break
        if item["question"] in existing:
            continue
        db.session.add(Question.from_item(topic, item, source="seed"))
        added += 1
    db.session.commit()
    if added:
        logger.info(f"Seeded {added} questions for topic {topic}")
    return added


def ensure_question_bank(topics=None, size=QUESTIONS_PER_TOPIC):
    return {topic: seed_topic(topic, size) for topic in (topics or QUESTION_TOPICS)}


def reset_usage_on_mode_switch(mode):
    """
    Wipe the whole usage ledger when the configured mode differs from the mode
    that served the most recent question. Returns True when a wipe happened.
    """
    latest_source = db.session.scalar(
        select(Question.source)
        .join(QuestionUsage, QuestionUsage.question_id == Question.id)
        .order_by(QuestionUsage.used_at.desc(), QuestionUsage.id.desc())
        .limit(1)
    )
    if latest_source is None:
        return False

    expected = "generated" if mode == GENERATIVE_MODE else "seed"
    if latest_source == expected:
        return False

    deleted = db.session.query(QuestionUsage).delete(synchronize_session=False)
    db.session.commit()
    logger.info(f"Question source switched to {mode}; cleared {deleted} usage records")
    return True


def count_by_topic():
    rows = db.session.execute(
        select(Question.topic, func.count(Question.id)).group_by(Question.topic)
    ).all()
    return {topic: count for topic, count in rows}
