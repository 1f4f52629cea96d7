"""
QuoteFlow Dashboard: HTML Templates
Jinja strings rendered through dashboard.render(), which wraps them in the
page chrome (header, nav, notification bell, flashed messages).
"""

BASE_CSS = """
:root{--bg:#f5f6f8;--sf:#ffffff;--sf2:#eef0f4;--bd:#d9dde5;--tx:#1d2230;--tx2:#667085;
--ac:#2563eb;--ac2:#1d4ed8;--gn:#16a34a;--yl:#d97706;--rd:#dc2626;--or:#ea580c;--r:8px}
*,*::before,*::after{box-sizing:border-box;margin:0;padding:0}
body{font:14px/1.45 system-ui,-apple-system,'Segoe UI',sans-serif;background:var(--bg);color:var(--tx)}
a{color:var(--ac)}a:not(.btn):hover{text-decoration:underline}
.hdr{background:var(--sf);border-bottom:2px solid var(--bd);padding:14px 28px;display:flex;justify-content:space-between;align-items:center;flex-wrap:wrap;gap:12px}
.hdr h1{font-size:17px;font-weight:600;color:var(--tx2)}
.hdr-btn{padding:6px 14px;font-size:12px;font-weight:600;border-radius:6px;border:1px solid var(--bd);background:var(--sf2);color:var(--tx);text-decoration:none;display:inline-flex;align-items:center;gap:4px}
.hdr-btn:hover{border-color:var(--ac);color:var(--ac)}
.hdr-right{display:flex;align-items:center;gap:10px;font-size:12px;color:var(--tx2)}
.bell{position:relative;cursor:pointer}
.bell-count{position:absolute;top:-6px;right:-8px;background:var(--rd);color:#fff;border-radius:9px;font-size:10px;padding:0 5px}
.bell-panel{display:none;position:absolute;right:0;top:24px;width:320px;background:var(--sf);border:1px solid var(--bd);border-radius:var(--r);padding:8px;z-index:20}
.bell-item{padding:8px;border-radius:6px;font-size:12px}.bell-item.unread{background:var(--sf2)}
.ctr{max-width:1400px;margin:0 auto;padding:20px 28px}
.card{background:var(--sf);border:1px solid var(--bd);border-radius:var(--r);padding:18px 20px;margin-bottom:14px;box-shadow:0 1px 2px rgba(16,24,40,.05)}
.card-t{font-size:13px;font-weight:600;color:var(--tx2);margin-bottom:12px}
.badge{display:inline-block;padding:2px 8px;border-radius:4px;font-size:11px;font-weight:600}
.b-waiting{background:rgba(251,191,36,.15);color:var(--yl)}
.b-progress{background:rgba(79,140,255,.15);color:var(--ac)}
.b-completed{background:#dcfce7;color:var(--gn)}
.b-archived{background:rgba(139,144,160,.15);color:var(--tx2)}
.b-rejected,.b-withdrawn{background:rgba(248,113,113,.15);color:var(--rd)}
.tbl{width:100%;border-collapse:collapse;font-size:13px}
.tbl th{text-align:left;padding:8px 10px;font-size:10px;color:var(--tx2);text-transform:uppercase;border-bottom:1px solid var(--bd)}
.tbl td{padding:10px;border-bottom:1px solid rgba(46,51,69,.5);vertical-align:middle}
.mono{font-family:'JetBrains Mono',monospace}
.btn{padding:7px 14px;border-radius:6px;border:1px solid var(--bd);background:var(--ac);color:#fff;font-size:12px;font-weight:600;cursor:pointer}
.btn-s{background:var(--sf2);color:var(--tx)}.btn-d{background:var(--rd)}
input,select,textarea{background:var(--sf2);border:1px solid var(--bd);color:var(--tx);border-radius:6px;padding:6px 8px;font-size:13px;width:100%}
label{font-size:11px;color:var(--tx2);display:block;margin:8px 0 3px}
.grid{display:grid;grid-template-columns:repeat(4,1fr);gap:10px}
.err{color:var(--rd);font-size:11px}
.alert{padding:10px 14px;border-radius:8px;margin-bottom:12px;font-size:13px}
.al-s{background:rgba(52,211,153,.12);color:var(--gn)}.al-e{background:rgba(248,113,113,.12);color:var(--rd)}.al-i{background:rgba(79,140,255,.12);color:var(--ac)}
.modal{display:none;position:fixed;inset:0;background:rgba(0,0,0,.6);align-items:center;justify-content:center;z-index:50}
.modal-box{background:var(--sf);border:1px solid var(--bd);border-radius:var(--r);padding:20px;max-width:640px;width:90%}
.kpi{font-size:28px;font-weight:700;font-family:'JetBrains Mono',monospace}
"""

LAYOUT_HEAD = """<!DOCTYPE html><html lang="{{ user.language if user else 'en' }}"><head><meta charset="utf-8">
<meta name="viewport" content="width=device-width,initial-scale=1">
<title>QuoteFlow</title><style>""" + BASE_CSS + """</style></head><body>
<div class="hdr"><h1><a href="/" style="color:inherit">QuoteFlow</a></h1>
<div class="hdr-right">
 <a href="/" class="hdr-btn">RFQs</a>
 {% if user.role in ('Sales', 'Admin') %}<a href="/rfq/new" class="hdr-btn">New RFQ</a><a href="/recycle-bin" class="hdr-btn">Recycle Bin</a>{% endif %}
 <a href="/stats" class="hdr-btn">Stats</a>
 {% if user.role == 'Admin' %}<a href="/users" class="hdr-btn">Users</a>{% endif %}
 <span class="bell" onclick="toggleBell()">&#128276;<span class="bell-count" id="bell-count" style="display:none"></span>
  <div class="bell-panel" id="bell-panel"></div></span>
 <span>{{ user.name }} &middot; {{ user.role }}</span>
</div></div>
<div class="ctr">
{% with messages = get_flashed_messages(with_categories=true) %}
 {% for cat, msg in messages %}<div class="alert al-{{ 's' if cat == 'success' else 'e' if cat == 'error' else 'i' }}">{{ msg }}</div>{% endfor %}
{% endwith %}
"""

LAYOUT_FOOT = """
<script>
function loadBell(){
 fetch('/api/notifications').then(r=>r.json()).then(d=>{
  const c=document.getElementById('bell-count');
  if(d.unread>0){c.textContent=d.unread;c.style.display='inline'}else{c.style.display='none'}
  const p=document.getElementById('bell-panel');
  p.innerHTML='<div style="text-align:right"><a href="#" onclick="readAll();return false">Mark all read</a></div>'+
   (d.notifications.length?d.notifications.map(n=>'<div class="bell-item'+(n.read?'':' unread')+'"><a href="'+(n.href||'/')+
   '" onclick="markRead(\\''+n.id+'\\')"><b>'+n.title+'</b><br>'+n.body+'</a></div>').join(''):'<div class="bell-item">No notifications</div>');
 });
}
function toggleBell(){const p=document.getElementById('bell-panel');p.style.display=p.style.display==='block'?'none':'block'}
function markRead(id){fetch('/api/notifications/'+id+'/read',{method:'POST'})}
function readAll(){fetch('/api/notifications/read-all',{method:'POST'}).then(loadBell)}
function post(url,body){return fetch(url,{method:'POST',headers:{'Content-Type':'application/json'},body:JSON.stringify(body||{})}).then(r=>r.json())}
loadBell();
</script>
</div></body></html>"""


PAGE_HOME = """
<div class="card"><div class="card-t">{{ title }}</div>
{% if rfqs %}
<table class="tbl"><thead><tr><th>Code</th><th>Customer</th><th>Products</th><th>Quotes</th><th>Status</th><th>Inquiry</th>{% if archived %}<th>Reason</th><th></th>{% endif %}</tr></thead><tbody>
{% for r in rfqs %}
<tr><td class="mono"><a href="/rfq/{{ r.id }}">{{ r.code }}</a></td>
<td>{{ r.customer_email }} <span style="color:var(--tx2)">({{ r.customer_type }})</span></td>
<td>{% for p in r.products %}<span class="mono">{{ p.wlid }}</span> {{ p.product_series }}<br>{% endfor %}</td>
<td>{{ r.quotes|length }}</td>
<td><span class="badge {{ badge(r.status) }}">{{ t(status_key(r.status)) }}</span></td>
<td class="mono">{{ r.inquiry_time.strftime('%Y-%m-%d %H:%M') }}</td>
{% if archived %}<td>{{ r.archive_reason }}</td>
<td><button class="btn btn-s" onclick="post('/api/rfq/{{ r.id }}/restore').then(()=>location.reload())">Restore</button>
{% if user.role == 'Admin' %}<button class="btn btn-d" onclick="if(confirm('Delete permanently?'))post('/api/rfq/{{ r.id }}/delete').then(()=>location.reload())">Delete</button>{% endif %}</td>{% endif %}
</tr>
{% endfor %}</tbody></table>
{% else %}<p style="color:var(--tx2)">Nothing here yet.</p>{% endif %}
</div>
"""


PAGE_RFQ_NEW = """
<div class="card"><div class="card-t">New RFQ</div>
<div style="display:flex;gap:8px;margin-bottom:12px">
 <textarea id="extract-text" rows="2" placeholder="Paste the customer's request to pre-fill the form"></textarea>
 <button class="btn btn-s" type="button" onclick="extractText()">Fill from text</button>
</div>
<form method="post" action="/rfq/new" id="rfq-form">
<input type="hidden" name="_csrf_token" value="{{ csrf_token() }}">
<div class="grid">
 <div><label>Customer type</label><select name="customer_type">
  {% for ct in customer_types %}<option {{ 'selected' if form.customer_type == ct }}>{{ ct }}</option>{% endfor %}</select></div>
 <div><label>Customer email</label><input name="customer_email" value="{{ form.customer_email or '' }}">
  {% if errors.customer_email %}<div class="err">{{ errors.customer_email }}</div>{% endif %}</div>
 <div style="grid-column:span 2"><label>Assigned purchasers</label>
  <select name="assigned_purchaser_ids" multiple size="3">
  {% for p in purchasers %}<option value="{{ p.id }}" {{ 'selected' if p.id in (form.assigned_purchaser_ids or []) }}>{{ p.name }}</option>{% endfor %}</select>
  {% if errors.assigned_purchaser_ids %}<div class="err">{{ errors.assigned_purchaser_ids }}</div>{% endif %}</div>
</div>
<div id="products"></div>
{% if errors.products %}<div class="err">{{ errors.products }}</div>{% endif %}
<div style="margin-top:12px;display:flex;gap:8px">
 <button class="btn btn-s" type="button" onclick="addProduct()">+ Product</button>
 <button class="btn" type="submit">Create RFQ</button>
</div>
</form></div>

<div class="modal" id="similar-modal"><div class="modal-box">
 <div class="card-t">{{ t('similar_quotes_found') }}</div>
 <table class="tbl"><thead><tr><th>RFQ</th><th>WLID</th><th>Purchaser</th><th>Price</th><th>Delivery</th><th>Quoted</th></tr></thead>
 <tbody id="similar-body"></tbody></table>
 <div style="text-align:right;margin-top:12px"><button class="btn btn-s" type="button" onclick="closeSimilar()">Close</button></div>
</div></div>

<script>
const SERIES={{ series|tojson }};
const CONFIGS={{ configs|tojson }};
const DEFAULT_FIELDS={{ default_fields|tojson }};
const INITIAL={{ (form.products or [])|tojson }};
const ERRORS={{ errors|tojson }};
let idx=0, dismissed={};

function fieldHtml(i,f,val){
 const name='products-'+i+'-'+f.name, err=ERRORS['products.'+i+'.'+f.name];
 let input;
 if(f.options){input='<select name="'+name+'" onchange="checkSimilar('+i+')"><option value=""></option>'+
   f.options.map(o=>'<option'+(o===val?' selected':'')+'>'+o+'</option>').join('')+'</select>'}
 else{input='<input name="'+name+'" value="'+(val||'').replace(/"/g,'&quot;')+'" placeholder="'+(f.placeholder||'')+'" onchange="checkSimilar('+i+')">'}
 return '<div><label>'+f.name.replace('_',' ')+'</label>'+input+(err?'<div class="err">'+err+'</div>':'')+'</div>';
}
function renderFields(i,series,values){
 const fields=CONFIGS[series]||DEFAULT_FIELDS;
 document.getElementById('fields-'+i).innerHTML=fields.map(f=>fieldHtml(i,f,(values||{})[f.name])).join('');
}
function addProduct(values){
 const i=idx++; values=values||{};
 const div=document.createElement('div');div.className='card';div.id='product-'+i;
 div.innerHTML='<div class="grid"><div><label>Product series</label><select name="products-'+i+'-product_series" onchange="renderFields('+i+',this.value);checkSimilar('+i+')">'+
  '<option value=""></option>'+SERIES.map(s=>'<option'+(s===values.product_series?' selected':'')+'>'+s+'</option>').join('')+
  '</select></div><div><label>WLID</label><input disabled id="wlid-'+i+'" placeholder="assigned on save"></div>'+
  '<div><label>Image URLs</label><input name="products-'+i+'-images" value="'+(values.images||[]).join(' ')+'"></div>'+
  '<div style="text-align:right"><button class="btn btn-s" type="button" onclick="this.closest(\\'.card\\').remove()">Remove</button></div></div>'+
  '<div class="grid" id="fields-'+i+'"></div>';
 document.getElementById('products').appendChild(div);
 renderFields(i,values.product_series||'',values);
}
function productValues(i){
 const out={};document.querySelectorAll('[name^="products-'+i+'-"]').forEach(el=>{out[el.name.split('-').slice(2).join('-')]=el.value});
 return out;
}
function checkSimilar(i){
 const p=productValues(i);
 if(p.product_series){fetch('/api/wlid/next?series='+encodeURIComponent(p.product_series)).then(r=>r.json()).then(d=>{if(d.ok)document.getElementById('wlid-'+i).placeholder=d.wlid+' (preview)'})}
 if(!p.product_series||dismissed[i])return;
 post('/api/similar-quotes',{product:p}).then(d=>{
  if(!d.ok||!d.quotes.length)return;
  document.getElementById('similar-body').innerHTML=d.quotes.map(q=>'<tr><td class="mono"><a href="/rfq/'+q.rfq_id+'">'+q.rfq_code+'</a></td><td class="mono">'+q.wlid+
   '</td><td>'+q.purchaser_name+'</td><td class="mono">'+q.price_rmb+' / '+q.price_usd+'</td><td>'+(q.delivery_date||'').slice(0,10)+'</td><td>'+q.quote_time.slice(0,10)+'</td></tr>').join('');
  document.getElementById('similar-modal').style.display='flex';dismissed[i]=true;
 });
}
function closeSimilar(){document.getElementById('similar-modal').style.display='none'}
function extractText(){
 post('/api/rfq/extract',{text:document.getElementById('extract-text').value}).then(d=>{
  if(!d.ok)return alert(d.error);
  const data=d.data, f=document.getElementById('rfq-form');
  if(data.customer_email)f.customer_email.value=data.customer_email;
  if(data.customer_type)f.customer_type.value=data.customer_type;
  (data.assigned_purchaser_ids||[]).forEach(id=>{const o=f.assigned_purchaser_ids.querySelector('option[value="'+id+'"]');if(o)o.selected=true});
  (data.products||[]).forEach(p=>addProduct(p));
 });
}
if(INITIAL.length){INITIAL.forEach(p=>addProduct(p))}else{addProduct()}
</script>
"""


PAGE_RFQ_DETAIL = """
<div class="card"><div class="card-t">RFQ <span class="mono">{{ rfq.code }}</span>
 <span class="badge {{ badge(rfq.status) }}">{{ t(status_key(rfq.status)) }}</span></div>
<div class="grid">
 <div><label>Customer</label>{{ rfq.customer_email }} ({{ rfq.customer_type }})</div>
 <div><label>Created by</label>{{ users.get(rfq.creator_id).name if users.get(rfq.creator_id) else rfq.creator_id }}</div>
 <div><label>Inquiry time</label><span class="mono">{{ rfq.inquiry_time.strftime('%Y-%m-%d %H:%M') }}</span></div>
 <div><label>Purchasers</label>{% for pid in rfq.assigned_purchaser_ids %}{{ users.get(pid).name if users.get(pid) else pid }}{{ ', ' if not loop.last }}{% endfor %}</div>
</div>
{% if rfq.archive_reason %}<div class="alert al-i" style="margin-top:10px">Archived: {{ rfq.archive_reason }}</div>{% endif %}
{% if can_manage and rfq.status != 'Archived' %}
<div style="margin-top:12px"><button class="btn btn-s" onclick="const r=prompt('Reason for archiving');if(r)post('/api/rfq/{{ rfq.id }}/archive',{reason:r}).then(d=>d.ok?location.href='/':alert(d.error))">Archive</button></div>
{% endif %}
</div>

{% for p in rfq.products %}
<div class="card"><div class="card-t"><span class="mono">{{ p.wlid }}</span> &middot; {{ p.product_series }} &middot; {{ p.sku }}</div>
<div class="grid">
 <div><label>Hair fiber</label>{{ p.hair_fiber or '/' }}</div><div><label>Cap</label>{{ p.cap or '/' }}</div>
 <div><label>Cap size</label>{{ p.cap_size or '/' }}</div><div><label>Length</label>{{ p.length or '/' }}</div>
 <div><label>Density</label>{{ p.density or '/' }}</div><div><label>Color</label>{{ p.color or '/' }}</div>
 <div><label>Curl style</label>{{ p.curl_style or '/' }}</div>
 <div><label>Images</label>{% for img in p.images %}<a href="{{ img }}" target="_blank">#{{ loop.index }}</a> {% endfor %}</div>
</div>
<table class="tbl" style="margin-top:12px"><thead><tr><th>Purchaser</th><th>Price (RMB / USD)</th><th>Delivery</th><th>Quoted</th><th>Status</th><th>Notes</th><th></th></tr></thead><tbody>
{% for q in rfq.quotes_for(p.id) %}
<tr><td>{{ users.get(q.purchaser_id).name if users.get(q.purchaser_id) else q.purchaser_id }}</td>
<td class="mono">{{ format_rmb(q.price) }} / {{ format_usd(rmb_to_usd(q.price)) }}</td>
<td class="mono">{{ q.delivery_date.strftime('%Y-%m-%d') if q.delivery_date else '' }}</td>
<td class="mono">{{ q.quote_time.strftime('%Y-%m-%d %H:%M') }}</td>
<td><span class="badge {{ badge(q.status) }}">{{ q.status }}</span></td>
<td>{{ q.withdraw_reason or q.notes }}</td>
<td>{% if can_manage and q.status == 'Pending Acceptance' and rfq.status not in ('Archived', 'Quotation Completed') %}
<button class="btn" onclick="post('/api/rfq/{{ rfq.id }}/quotes/accept',{quote_id:'{{ q.id }}'}).then(d=>d.ok?location.reload():alert(d.error))">Accept</button>{% endif %}</td></tr>
{% else %}<tr><td colspan="7" style="color:var(--tx2)">No quotes yet.</td></tr>{% endfor %}
</tbody></table>
{% for w in rfq.withdrawals_for(p.id) %}
<div class="err" style="margin-top:6px">{{ users.get(w.purchaser_id).name if users.get(w.purchaser_id) else w.purchaser_id }} abandoned this product on {{ w.withdrawn_at.strftime('%Y-%m-%d %H:%M') }}: {{ w.reason }}</div>
{% endfor %}
{% if is_purchaser and rfq.status not in ('Archived', 'Quotation Completed') %}
{% set mine = own_quotes.get(p.id) %}
{% if not mine or mine.status != 'Accepted' %}
<div class="grid" style="margin-top:12px" id="quote-{{ p.id }}">
 <div><label>Price (RMB)</label><input type="number" step="0.01" min="0" name="price" value="{{ mine.price if mine and mine.price else '' }}"></div>
 <div><label>Delivery date</label><input type="date" name="delivery_date" value="{{ mine.delivery_date.strftime('%Y-%m-%d') if mine and mine.delivery_date else '' }}"></div>
 <div><label>Notes</label><input name="notes" value="{{ mine.notes if mine else '' }}"></div>
 <div style="display:flex;gap:6px;align-items:flex-end">
  <button class="btn" onclick="submitQuote('{{ p.id }}')">{{ 'Update quote' if mine and mine.status == 'Pending Acceptance' else 'Submit quote' }}</button>
  <button class="btn btn-s" onclick="withdraw('{{ p.id }}')">Abandon</button></div>
</div>
{% endif %}{% endif %}
</div>
{% endfor %}

<script>
function submitQuote(pid){
 const box=document.getElementById('quote-'+pid), v=n=>box.querySelector('[name='+n+']').value;
 post('/api/rfq/{{ rfq.id }}/quotes',{product_id:pid,price:v('price'),delivery_date:v('delivery_date'),notes:v('notes')})
  .then(d=>d.ok?location.reload():alert(d.error+(d.errors?'\\n'+Object.values(d.errors).join('\\n'):'')));
}
function withdraw(pid){
 const r=prompt('Why are you abandoning this product? (max 300 characters)');
 if(r)post('/api/rfq/{{ rfq.id }}/quotes/withdraw',{product_id:pid,reason:r}).then(d=>d.ok?location.reload():alert(d.error));
}
</script>
"""


PAGE_USERS = """
<div class="card"><div class="card-t">Users</div>
<table class="tbl"><thead><tr><th>Name</th><th>Email</th><th>Role</th><th>Status</th><th>Language</th><th>Registered</th><th>Last login</th></tr></thead><tbody>
{% for u in users %}
<tr><td>{{ u.name }}{% if u.must_change_password %} <span class="badge b-waiting">temp password</span>{% endif %}</td>
<td>{{ u.email }}</td>
<td><select onchange="post('/api/users/{{ u.id }}',{role:this.value}).then(d=>d.ok||alert(d.error))">
 {% for r in roles %}<option {{ 'selected' if r == u.role }}>{{ r }}</option>{% endfor %}</select></td>
<td><select onchange="post('/api/users/{{ u.id }}',{status:this.value}).then(d=>d.ok||alert(d.error))">
 {% for s in statuses %}<option {{ 'selected' if s == u.status }}>{{ s }}</option>{% endfor %}</select></td>
<td>{{ u.language }}</td>
<td class="mono">{{ u.registration_date.strftime('%Y-%m-%d') if u.registration_date else '' }}</td>
<td class="mono">{{ u.last_login_time.strftime('%Y-%m-%d %H:%M') if u.last_login_time else '' }}</td></tr>
{% endfor %}</tbody></table></div>

<div class="card"><div class="card-t">Create user</div>
<div class="grid" id="new-user">
 <div><label>Name</label><input name="name"></div><div><label>Email</label><input name="email"></div>
 <div><label>Initial password</label><input name="password" type="password"></div>
 <div><label>Role</label><select name="role">{% for r in roles %}<option>{{ r }}</option>{% endfor %}</select></div>
 <div><label>Language</label><select name="language">{% for l in languages %}<option>{{ l }}</option>{% endfor %}</select></div>
 <div style="display:flex;align-items:flex-end"><button class="btn" onclick="createUser()">Create</button></div>
</div></div>
<script>
function createUser(){
 const box=document.getElementById('new-user'), body={};
 box.querySelectorAll('[name]').forEach(el=>body[el.name]=el.value);
 post('/api/users',body).then(d=>d.ok?location.reload():alert(d.error+(d.errors?'\\n'+Object.values(d.errors).join('\\n'):'')));
}
</script>
"""


PAGE_STATS = """
{% if sales %}
<div class="card"><div class="card-t">Sales</div><div class="grid">
 <div><label>Total RFQs</label><div class="kpi">{{ sales.total_rfqs }}</div></div>
 <div><label>Completed</label><div class="kpi">{{ sales.completed_rfqs }}</div></div>
 <div><label>Completion rate</label><div class="kpi">{{ sales.completion_rate }}%</div></div>
</div>
<table class="tbl" style="margin-top:12px"><tr>{% for s, n in sales.status_breakdown.items() %}<th>{{ t(status_key(s)) }}</th>{% endfor %}</tr>
<tr>{% for s, n in sales.status_breakdown.items() %}<td class="mono">{{ n }}</td>{% endfor %}</tr></table>
<table class="tbl" style="margin-top:12px"><tr>{% for m in sales.monthly_rfqs %}<th>{{ m }}</th>{% endfor %}</tr>
<tr>{% for m, n in sales.monthly_rfqs.items() %}<td class="mono">{{ n }}</td>{% endfor %}</tr></table></div>
{% endif %}
{% if purchasing %}
<div class="card"><div class="card-t">Purchasing</div><div class="grid">
 <div><label>Assigned RFQs</label><div class="kpi">{{ purchasing.total_assigned }}</div></div>
 <div><label>Quotes sent</label><div class="kpi">{{ purchasing.total_quoted }}</div></div>
 <div><label>Accepted</label><div class="kpi">{{ purchasing.accepted_quotes }}</div></div>
 <div><label>Average quote</label><div class="kpi">{{ format_rmb(purchasing.avg_quote_value) }}</div></div>
 <div><label>Quoted RFQs</label><div class="kpi">{{ purchasing.quoted_rfqs }}</div></div>
 <div><label>Pending RFQs</label><div class="kpi">{{ purchasing.pending_rfqs }}</div></div>
</div>
<table class="tbl" style="margin-top:12px"><tr>{% for m in purchasing.monthly_quotes %}<th>{{ m }}</th>{% endfor %}</tr>
<tr>{% for m, n in purchasing.monthly_quotes.items() %}<td class="mono">{{ n }}</td>{% endfor %}</tr></table></div>
{% endif %}
{% if overview %}
<div class="card"><div class="card-t">Overview</div><div class="grid">
 <div><label>Users</label><div class="kpi">{{ overview.users }}</div></div>
 <div><label>Active users</label><div class="kpi">{{ overview.active_users }}</div></div>
 <div><label>RFQs</label><div class="kpi">{{ overview.rfqs }}</div></div>
 <div><label>Quotes</label><div class="kpi">{{ overview.quotes }}</div></div>
</div></div>
{% endif %}
"""
