# app/data/aspects.py
# Core values competency catalogue (BerAKHLAK) rated in each assessment.

ASSESSMENT_ASPECTS = [
    {
        "id": "berorientasi_pelayanan",
        "name": "Berorientasi Pelayanan",
        "indicators": [
            "Memahami dan memenuhi kebutuhan masyarakat",
            "Ramah, cekatan, solutif, dan dapat diandalkan",
            "Melakukan perbaikan tiada henti",
        ],
    },
    {
        "id": "akuntabel",
        "name": "Akuntabel",
        "indicators": [
            "Melaksanakan tugas dengan jujur, bertanggungjawab, cermat, disiplin dan berintegritas tinggi",
            "Menggunakan kekayaan dan barang milik negara secara bertanggungjawab, efektif, dan efisien",
            "Tidak menyalahgunakan kewenangan jabatan",
        ],
    },
    {
        "id": "kompeten",
        "name": "Kompeten",
        "indicators": [
            "Meningkatkan kompetensi diri untuk menjawab tantangan yang selalu berubah",
            "Membantu orang lain belajar",
            "Melaksanakan tugas dengan kualitas terbaik",
        ],
    },
    {
        "id": "harmonis",
        "name": "Harmonis",
        "indicators": [
            "Menghargai setiap orang apapun latar belakangnya",
            "Suka menolong orang lain",
            "Membangun lingkungan kerja yang kondusif",
        ],
    },
    {
        "id": "loyal",
        "name": "Loyal",
        "indicators": [
            "Memegang teguh ideologi Pancasila, UUD 1945, setia kepada NKRI serta pemerintahan yang sah",
            "Menjaga nama baik sesama ASN, Pimpinan, Instansi, dan Negara",
            "Menjaga rahasia jabatan dan negara",
        ],
    },
    {
        "id": "adaptif",
        "name": "Adaptif",
        "indicators": [
            "Cepat menyesuaikan diri menghadapi perubahan",
            "Terus berinovasi dan mengembangkan kreativitas",
            "Bertindak proaktif",
        ],
    },
    {
        "id": "kolaboratif",
        "name": "Kolaboratif",
        "indicators": [
            "Memberi kesempatan kepada berbagai pihak untuk berkontribusi",
            "Terbuka dalam bekerja sama untuk menghasilkan nilai tambah",
            "Menggerakkan pemanfaatan berbagai sumberdaya untuk tujuan bersama",
        ],
    },
]

ASPECT_IDS = frozenset(aspect["id"] for aspect in ASSESSMENT_ASPECTS)
