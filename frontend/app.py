# frontend/app.py

import os

import requests
import streamlit as st

from dealdesk.formatting import format_currency_cents, format_date, format_file_size
from dealdesk.metrics import MetricSelection
from dealdesk.schemas import MetricSeries

API_URL = os.getenv("API_URL", "http://api:8000").rstrip("/")
# Streamlit has no slate colour
BADGE_COLORS = {"slate": "gray"}

st.set_page_config(page_title="Deal Desk", layout="wide")


def api(method: str, path: str, **kwargs):
    """Call the backend; shows the error and returns None when the call fails."""
    try:
        resp = requests.request(method, f"{API_URL}{path}", timeout=60, **kwargs)
    except requests.RequestException as e:
        st.error(f"API unreachable: {e}")
        return None
    if not resp.ok:
        try:
            detail = resp.json().get("detail", resp.text)
        except ValueError:
            detail = resp.text
        st.error(f"Error: {resp.status_code} - {detail}")
        return None
    return resp


def as_json(resp, default=None):
    if resp is None or resp.status_code == 204:
        return default
    return resp.json()


# ---------------------------
# Deals
# ---------------------------

def deals_page():
    st.title("Deals")

    with st.form("submit_deal", clear_on_submit=True):
        deck = st.file_uploader("Pitch deck (PDF, 50 MB max)", type=["pdf"])
        context = st.text_area("Additional context")
        submitted = st.form_submit_button("Analyser")
    if submitted:
        if deck is None:
            st.error("Veuillez sélectionner un fichier PDF")
        else:
            with st.spinner("Analyse en cours..."):
                resp = api(
                    "POST", "/deals",
                    files={"file": (deck.name, deck.getvalue(), "application/pdf")},
                    data={"additional_context": context},
                )
            deal = as_json(resp)
            if deal:
                if deal["status"] == "completed":
                    st.toast("Analyse terminée")
                else:
                    st.warning(deal.get("error_message") or "Analyse en attente")

    st.markdown("---")

    deals = as_json(api("GET", "/deals"), [])
    if not deals:
        st.info("Aucun deal pour le moment.")
        return
    for deal in deals:
        badge = deal["badge"]
        with st.expander(f"{deal['company_name']} · {badge['label']}"):
            st.caption(f"Créé le {format_date(deal['created_at'])}")
            if deal.get("error_message"):
                st.error(deal["error_message"])
            if deal["status"] == "completed":
                memo = api("GET", f"/deals/{deal['id']}/memo")
                if memo is not None:
                    st.markdown(memo.text, unsafe_allow_html=True)
            for doc in as_json(api("GET", f"/deals/{deal['id']}/documents"), []):
                url = as_json(api("GET", f"/deals/{deal['id']}/documents/{doc['id']}/url"), {})
                label = f"{doc['file_name']} ({format_file_size(doc.get('file_size_bytes'))})"
                if url.get("url"):
                    st.markdown(f"[{label}]({url['url']})")
                else:
                    st.write(label)
            st.markdown("**Chat**")
            chat_section(f"/deals/{deal['id']}", f"deal_{deal['id']}")
            if st.button("Supprimer", key=f"delete_deal_{deal['id']}"):
                if api("DELETE", f"/deals/{deal['id']}") is not None:
                    st.toast("Deal supprimé")
                    st.rerun()


# ---------------------------
# Chat
# ---------------------------

def chat_section(subject_path: str, key: str):
    """Conversation picker, message history and question box for a deal or company."""
    conversations = as_json(api("GET", f"{subject_path}/conversations"), [])
    options = [None] + conversations
    current = st.selectbox(
        "Conversation",
        options,
        format_func=lambda c: "Nouvelle conversation" if c is None else c["title"],
        key=f"conversation_{key}",
    )
    if current is not None:
        for message in as_json(api("GET", f"/conversations/{current['id']}/messages"), []):
            with st.chat_message(message["role"]):
                st.markdown(message["content"])

    question = st.text_input("Votre question", key=f"question_{key}")
    col_send, col_delete = st.columns([1, 1])
    if col_send.button("Envoyer", key=f"send_{key}") and question.strip():
        payload = {"message": question, "conversation_id": current["id"] if current else None}
        with st.spinner("Réflexion en cours..."):
            reply = as_json(api("POST", f"{subject_path}/chat", json=payload))
        if reply:
            with st.chat_message("user"):
                st.markdown(reply["user_message"]["content"])
            with st.chat_message("assistant"):
                st.markdown(reply["assistant_message"]["content"])
    if current is not None and col_delete.button("Supprimer la conversation", key=f"delete_conv_{key}"):
        if api("DELETE", f"/conversations/{current['id']}") is not None:
            st.toast("Conversation supprimée")
            st.rerun()


# ---------------------------
# Portfolio
# ---------------------------

def analysis_banner(company_id: str):
    result = as_json(api("GET", f"/companies/{company_id}/analysis"), {})
    col_summary, col_action = st.columns([5, 1])
    with col_action:
        if st.button("Analyser", key=f"analyze_{company_id}"):
            with st.spinner("Analyse IA..."):
                result = as_json(
                    api("POST", f"/companies/{company_id}/analysis", json={"force_refresh": True}), {}
                )
    with col_summary:
        if not result.get("available"):
            st.info("Analyse IA indisponible pour le moment.")
            return
        analysis = result["analysis"]
        score = analysis["health_score"]
        st.markdown(
            f"<span style='color:{result['health_color']};font-weight:700'>"
            f"{score['score']}/10 · {score['label']}</span>",
            unsafe_allow_html=True,
        )
        st.write(analysis["executive_summary"])
        for alert in analysis.get("alerts", []):
            show = {"critical": st.error, "warning": st.warning}.get(alert["severity"], st.info)
            show(f"**{alert['title']}** {alert['message']}")


def metrics_section(company_id: str):
    data = as_json(api("GET", f"/companies/{company_id}/metrics"))
    if not data or not data["series"]:
        st.info("Aucune métrique disponible.")
        return
    series = {s["key"]: MetricSeries.model_validate(s) for s in data["series"]}

    state_key = f"selection_{company_id}"
    if state_key not in st.session_state:
        st.session_state[state_key] = MetricSelection.initial(series.values())
    selection = st.session_state[state_key]

    with st.sidebar:
        st.subheader("Métriques")
        col_all, col_none = st.columns(2)
        if col_all.button("Tout"):
            selection.select_all(series.keys())
        if col_none.button("Aucune"):
            selection.select_none()
        for category, keys in data["categories"].items():
            st.caption(category)
            for key in keys:
                checked = st.checkbox(series[key].label, value=key in selection.selected,
                                      key=f"{company_id}_{key}")
                if checked != (key in selection.selected):
                    selection.toggle(key)

    columns = st.columns(3)
    for column, key in zip(columns, selection.top_keys()):
        item = series[key]
        with column:
            st.metric(item.label, item.formatted_latest, item.variation)
            chart = api("GET", f"/companies/{company_id}/metrics/{key}/chart.svg")
            if chart is not None:
                st.markdown(chart.text, unsafe_allow_html=True)

    extras = selection.extra_keys(order=series.keys())
    if extras:
        st.markdown("**Autres métriques**")
        for key in extras:
            item = series[key]
            col_label, col_value, col_action = st.columns([3, 2, 1])
            col_label.write(item.label)
            col_value.write(item.formatted_latest)
            if col_action.button("↑", key=f"promote_{company_id}_{key}"):
                selection.promote(key)
                st.rerun()


def reports_section(company_id: str):
    with st.form(f"upload_report_{company_id}", clear_on_submit=True):
        files = st.file_uploader("Nouveau rapport", accept_multiple_files=True)
        context = st.text_input("Contexte")
        if st.form_submit_button("Envoyer"):
            if not files:
                st.error("Veuillez sélectionner au moins un fichier")
            else:
                resp = api(
                    "POST", f"/companies/{company_id}/reports",
                    files=[("files", (f.name, f.getvalue(), f.type)) for f in files],
                    data={"additional_context": context},
                )
                if resp is not None:
                    st.toast("Rapport envoyé, analyse en cours")

    for report in as_json(api("GET", f"/companies/{company_id}/reports"), []):
        title = report.get("report_period") or format_date(report.get("created_at"))
        with st.expander(f"{title} · {report.get('processing_status') or 'completed'}"):
            if report.get("headline"):
                st.markdown(f"**{report['headline']}**")
            for highlight in report.get("key_highlights") or []:
                st.write(f"- {highlight}")
            for f in report["files"]:
                st.caption(f["file_name"])


def document_label(doc) -> str:
    if doc["type"] == "folder":
        return f"📁 {doc['name']}"
    kind = doc.get("file_kind") or {}
    if not kind.get("badge"):
        return f"📄 {doc['name']}"
    color = BADGE_COLORS.get(kind.get("color"), kind.get("color") or "gray")
    return f":{color}-background[{kind['badge']}] {doc['name']}"


def rename_or_move(documents, contents):
    with st.expander("Renommer / déplacer"):
        target = st.selectbox("Élément", contents, format_func=lambda d: d["name"],
                              key=f"rename_target_{contents[0]['parent_id']}")
        new_name = st.text_input("Nom", value=target["name"], key=f"rename_name_{target['id']}")
        folders = [None] + [d for d in documents if d["type"] == "folder" and d["id"] != target["id"]]
        destination = st.selectbox(
            "Dossier",
            folders,
            index=next((i for i, f in enumerate(folders) if f and f["id"] == target["parent_id"]), 0),
            format_func=lambda f: "Fichiers" if f is None else f["name"],
            key=f"rename_parent_{target['id']}",
        )
        if st.button("Appliquer", key=f"rename_apply_{target['id']}"):
            payload = {"name": new_name, "parent_id": destination["id"] if destination else None}
            if api("PATCH", f"/documents/{target['id']}", json=payload) is not None:
                st.toast("Document mis à jour")
                st.rerun()


def documents_section(company_id: str):
    folder_key = f"folder_{company_id}"
    current = st.session_state.get(folder_key)
    listing = as_json(api("GET", f"/companies/{company_id}/documents"), {"documents": []})
    documents = listing["documents"]

    if current:
        crumbs = as_json(api("GET", f"/documents/{current}/breadcrumbs"), [])
    else:
        crumbs = [{"id": None, "name": "Fichiers"}]
    crumb_cols = st.columns(max(len(crumbs), 1))
    for column, crumb in zip(crumb_cols, crumbs):
        if column.button(crumb["name"], key=f"crumb_{company_id}_{crumb['id']}"):
            st.session_state[folder_key] = crumb["id"]
            st.rerun()

    col_folder, col_upload = st.columns(2)
    with col_folder:
        name = st.text_input("Nouveau dossier", key=f"new_folder_{company_id}")
        if st.button("Créer", key=f"create_folder_{company_id}") and name:
            if api("POST", f"/companies/{company_id}/documents/folders",
                   json={"name": name, "parent_id": current}) is not None:
                st.rerun()
    with col_upload:
        uploads = st.file_uploader("Ajouter des fichiers", accept_multiple_files=True,
                                   key=f"doc_upload_{company_id}")
        if uploads and st.button("Uploader", key=f"upload_docs_{company_id}"):
            data = {"parent_id": current} if current else {}
            if api("POST", f"/companies/{company_id}/documents/files",
                   files=[("files", (f.name, f.getvalue(), f.type)) for f in uploads],
                   data=data) is not None:
                st.toast("Fichiers ajoutés")
                st.rerun()

    contents = [d for d in documents if d.get("parent_id") == current]
    contents.sort(key=lambda d: (d["type"] != "folder", d["name"].lower()))
    for doc in contents:
        col_name, col_open, col_delete = st.columns([4, 1, 1])
        col_name.markdown(document_label(doc))
        is_folder = doc["type"] == "folder"
        if col_open.button("Ouvrir", key=f"open_{doc['id']}",
                           disabled=not is_folder and not doc.get("previewable")):
            if is_folder:
                st.session_state[folder_key] = doc["id"]
                st.rerun()
            else:
                st.session_state[f"preview_{company_id}"] = doc["id"]
        if col_delete.button("🗑", key=f"delete_{doc['id']}"):
            if api("DELETE", f"/documents/{doc['id']}") is not None:
                st.toast("Supprimé")
                st.rerun()

    if contents:
        rename_or_move(documents, contents)

    preview_id =st.session_state.get(f"preview_{company_id}")
    if preview_id:
        preview = as_json(api("GET", f"/documents/{preview_id}/preview"), {})
        mode = preview.get("mode")
        if mode == "markdown":
            edited = st.text_area("Contenu", preview.get("text") or "", height=300)
            if st.button("Enregistrer", key=f"save_{preview_id}"):
                if api("PUT", f"/documents/{preview_id}/content", json={"content": edited}) is not None:
                    st.toast("Contenu enregistré")
        elif mode == "text":
            st.text(preview.get("text") or "")
        elif mode == "table":
            for table in preview.get("tables", []):
                st.caption(table["sheet"])
                st.dataframe(table["rows"])
        elif mode == "image" and preview.get("url"):
            st.image(preview["url"])
        elif mode == "pdf" and preview.get("url"):
            st.markdown(f"[Ouvrir le PDF]({preview['url']})")
        else:
            st.info("Aperçu non disponible pour ce type de fichier.")


def domains_section(company_id: str):
    for entry in as_json(api("GET", f"/companies/{company_id}/domains"), []):
        col_domain, col_primary, col_delete = st.columns([4, 1, 1])
        col_domain.write(f"{entry['domain']}{' ★' if entry['is_primary'] else ''}")
        if not entry["is_primary"] and col_primary.button("Principal", key=f"primary_{entry['id']}"):
            api("POST", f"/companies/{company_id}/domains/{entry['id']}/primary")
            st.rerun()
        if col_delete.button("🗑", key=f"delete_domain_{entry['id']}"):
            api("DELETE", f"/companies/{company_id}/domains/{entry['id']}")
            st.rerun()
    new_domain = st.text_input("Ajouter un domaine", key=f"domain_{company_id}")
    if st.button("Ajouter", key=f"add_domain_{company_id}") and new_domain:
        if api("POST", f"/companies/{company_id}/domains", json={"domain": new_domain}) is not None:
            st.toast("Domaine ajouté")
            st.rerun()


def portfolio_page():
    st.title("Portfolio")

    with st.expander("Importer un portfolio (CSV / Excel)"):
        sheet = st.file_uploader("Fichier", type=["csv", "xlsx", "xls"], key="portfolio_import")
        if sheet is not None and st.button("Importer"):
            result = as_json(api("POST", "/companies/import",
                                 files={"file": (sheet.name, sheet.getvalue(), sheet.type)}))
            if result:
                summary = result["summary"]
                st.success(f"{summary['successful']}/{summary['total']} sociétés importées")
                for row in result["results"]:
                    if not row["success"]:
                        st.warning(f"{row['company_name'] or '?'}: {row['error']}")

    companies = as_json(api("GET", "/companies"), [])
    if not companies:
        st.info("Aucune société en portefeuille.")
        return
    names = {c["company_name"]: c for c in companies}
    company = names[st.selectbox("Société", list(names))]
    st.caption(
        f"Investi : {format_currency_cents(company.get('amount_invested_cents'))}"
        f" · {', '.join(company.get('sectors') or [])}"
    )

    analysis_banner(company["id"])
    tab_metrics, tab_reports, tab_docs, tab_domains, tab_chat = st.tabs(
        ["Métriques", "Rapports", "Documents", "Domaines", "Chat"]
    )
    with tab_metrics:
        metrics_section(company["id"])
    with tab_reports:
        reports_section(company["id"])
    with tab_docs:
        documents_section(company["id"])
    with tab_domains:
        domains_section(company["id"])
    with tab_chat:
        chat_section(f"/companies/{company['id']}", f"company_{company['id']}")


page = st.sidebar.radio("Navigation", ["Deals", "Portfolio"])
if page == "Deals":
    deals_page()
else:
    portfolio_page()
